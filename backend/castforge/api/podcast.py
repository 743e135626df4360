from __future__ import annotations
"""Podcast API: script variants, optimization, prompt enhancement and speech."""

import logging

from fastapi import APIRouter, Depends

from castforge.api.deps import get_notifier, get_scripts, get_speech
from castforge.schemas.podcast import (
    AudioRequest,
    AudioResponse,
    OptimizeRequest,
    OptimizeResponse,
    PromptEnhanceRequest,
    PromptEnhanceResponse,
    ScriptRequest,
    ScriptResponse,
    VoiceRead,
)
from castforge.services.script_service import ScriptService
from castforge.services.tts_service import SpeechService
from castforge.services.webhook import AUDIO_GENERATED, SCRIPT_GENERATED, WebhookNotifier

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/script", response_model=ScriptResponse)
async def generate_script(
    req: ScriptRequest,
    scripts: ScriptService = Depends(get_scripts),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    """Generate alternative scripts for the configured topics."""
    variants = await scripts.generate_script_variants(req.config, req.duration, req.variant_count)
    notifier.notify(SCRIPT_GENERATED, {
        "topics": req.config.topics,
        "duration": req.duration,
        "variants": len(variants),
    })
    return {"variants": variants}


@router.post("/script/optimize", response_model=OptimizeResponse, response_model_by_alias=True)
async def optimize_script(req: OptimizeRequest, scripts: ScriptService = Depends(get_scripts)):
    optimized = await scripts.optimize_script(req.script, req.config)
    return OptimizeResponse(optimized_script=optimized)


@router.post("/prompt/enhance", response_model=PromptEnhanceResponse, response_model_by_alias=True)
async def enhance_prompt(req: PromptEnhanceRequest, scripts: ScriptService = Depends(get_scripts)):
    enhanced = await scripts.enhance_video_prompt(req.prompt, req.target_model)
    return PromptEnhanceResponse(enhanced_prompt=enhanced)


@router.post("/audio", response_model=AudioResponse, response_model_by_alias=True)
async def generate_audio(
    req: AudioRequest,
    speech: SpeechService = Depends(get_speech),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    """Synthesize the script; audio is returned inline as Base64 MP3."""
    audio = await speech.synthesize(req.script, req.voice_id)
    notifier.notify(AUDIO_GENERATED, {"voice_id": req.voice_id, "script_length": len(req.script)})
    return AudioResponse(audio_content=audio)


@router.get("/voices", response_model=list[VoiceRead])
async def list_voices(speech: SpeechService = Depends(get_speech)):
    return await speech.list_voices()
