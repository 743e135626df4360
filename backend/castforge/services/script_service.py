from __future__ import annotations
"""Script service: podcast script variants, script optimization and video
prompt enhancement.

Scripts are written in SCRIPT_LANGUAGE (German by default), spoken text only,
with natural pauses marked as [PAUSE] so the TTS step can render them.
"""

import json
import logging
from typing import Any

from castforge.errors import ValidationError
from castforge.schemas.podcast import PodcastScriptConfig
from castforge.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 150

SCRIPT_SYSTEM_PROMPT = """You are an experienced podcast script writer. Write engaging, conversational podcast scripts that sound natural when read aloud.

{sections}## IMPORTANT RULES
- The script should last about {duration} minutes (about {wpm} words per minute)
- Write ONLY the spoken text, no stage directions or speaker labels
- Mark natural pauses with [PAUSE]
- The text must sound authentic and passionate
- Follow the given structure and style
- Write the script in {language}

Generate EXACTLY {count} different variants of the script. Each variant should take a slightly different approach, tone or focus, but all must follow the guidelines.

Format your answer as a JSON array of {count} objects:
[
  {{"id": 1, "content": "First variant..."}},
  {{"id": 2, "content": "Second variant..."}}
]

Answer ONLY with the JSON array, no other text."""

OPTIMIZE_SYSTEM_PROMPT = """You are an expert in spoken language and podcast production. Your task is to optimize and refine a podcast script.

{sections}## OPTIMIZATION TASKS

1. **IMPROVE THE LANGUAGE**
   - Make the text more natural and conversational
   - Use the speaker's tone of voice
   - Add fitting filler words

2. **GRAMMAR AND STYLE**
   - Fix grammar mistakes
   - Improve sentence structure for a better spoken flow
   - Keep sentences short

3. **NATURAL SLIPS**
   - Occasionally add small self-corrections, marked with [CORRECTION]
   - Build in natural interruptions

4. **ACCENTS AND EMPHASIS**
   - Mark important words with *emphasis*
   - Add pauses with [PAUSE] or [SHORT PAUSE]
   - Mark emotional moments with [LAUGH], [THOUGHTFUL], [EXCITED]

5. **MOOD**
   - Add emotional variation and personal moments

Keep the script in its original language. Return ONLY the optimized script, no explanations or comments."""

ENHANCE_SYSTEM_PROMPT = """You are an expert at creating detailed video prompts for AI video generation models like {model_name}.

Your task is to enhance the user's video description to create a highly detailed, cinematic prompt that will produce better quality videos.

Guidelines:
1. Add specific visual details (lighting, colors, textures, atmosphere)
2. Describe camera movements and angles (close-up, wide shot, tracking shot, etc.)
3. Include temporal details (time of day, weather, movement speed)
4. Add emotional or mood descriptors
5. Specify quality indicators (4K, cinematic, professional, high-quality)
6. Keep the enhanced prompt concise but detailed (2-4 sentences max)
7. Maintain the original intent and subject matter

Respond with ONLY the enhanced prompt, no explanations or formatting."""

_MODEL_NAMES = {"veo3": "Google VEO 3", "sora": "OpenAI Sora", "kling": "Kling"}


def _config_sections(config: PodcastScriptConfig | None, *, include_structure: bool = True) -> str:
    if config is None:
        return ""
    parts = []
    if config.speaker_background:
        parts.append(f"## SPEAKER BACKGROUND\n{config.speaker_background}\n\n")
    if include_structure and config.podcast_structure:
        parts.append(f"## PODCAST STRUCTURE\n{config.podcast_structure}\n\n")
    if config.text_style:
        parts.append(f"## TEXT STYLE\n{config.text_style}\n\n")
    return "".join(parts)


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` and a trailing ``` from an LLM reply."""
    content = text.strip()
    if content.startswith("```json"):
        content = content[len("```json"):]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_variants(text: str) -> list[dict[str, Any]]:
    """Parse the variant array; fall back to one variant holding the raw text."""
    content = strip_code_fences(text)
    try:
        variants = json.loads(content)
        if not isinstance(variants, list):
            raise ValueError("Response is not an array")
    except ValueError as e:
        logger.error("Failed to parse variants JSON: %s\nContent was: %s", e, content[:500])
        return [{"id": 1, "content": content}]

    result = []
    for i, v in enumerate(variants, start=1):
        if isinstance(v, dict) and v.get("content"):
            result.append({"id": v.get("id", i), "content": str(v["content"])})
        elif isinstance(v, str) and v.strip():
            result.append({"id": i, "content": v})
    return result or [{"id": 1, "content": content}]


def local_prompt_enhancement(prompt: str, target_model: str = "sora") -> str:
    """Deterministic enhancement used when no LLM is available."""
    model_specific = (
        "smooth camera motion, natural lighting, photorealistic"
        if target_model == "veo3"
        else "cinematic quality, professional cinematography, seamless transitions"
    )
    return (
        f"Cinematic 4K video: {prompt}. {model_specific}. High detail textures, vibrant colors, "
        "professional lighting setup, atmospheric depth. Shot on professional camera with "
        "stabilized movement."
    )


class ScriptService:
    """LLM-backed script and prompt operations."""

    def __init__(self, llm: LLMClient, language: str = "German", prompt_model: str | None = None):
        self._llm = llm
        self._language = language
        self._prompt_model = prompt_model

    async def generate_script_variants(
        self,
        config: PodcastScriptConfig,
        duration: int = 5,
        variant_count: int = 3,
    ) -> list[dict[str, Any]]:
        """Generate ``variant_count`` alternative scripts for the configured topics.

        Returns:
            List of ``{"id", "content"}`` dicts. A reply that is not a JSON
            array comes back as a single variant.
        """
        if not config.topics or not config.topics.strip():
            raise ValidationError("Podcast configuration with topics is required")

        logger.info("Generating %d podcast script variants, topics: %s...", variant_count, config.topics[:100])
        system_prompt = SCRIPT_SYSTEM_PROMPT.format(
            sections=_config_sections(config),
            duration=duration,
            wpm=WORDS_PER_MINUTE,
            language=self._language,
            count=variant_count,
        )
        content = await self._llm.call(
            system_prompt,
            f"Write {variant_count} podcast script variants for the following topics:\n\n{config.topics}",
            caller="script_variants",
        )
        variants = parse_variants(content)
        logger.info("Generated %d script variants successfully", len(variants))
        return variants

    async def optimize_script(self, script: str, config: PodcastScriptConfig | None = None) -> str:
        if not script or not script.strip():
            raise ValidationError("Script is required for optimization")

        logger.info("Optimizing script of length: %d characters", len(script))
        optimized = await self._llm.call(
            OPTIMIZE_SYSTEM_PROMPT.format(sections=_config_sections(config, include_structure=False)),
            f"Optimize the following podcast script:\n\n{script}",
            caller="script_optimize",
        )
        optimized = strip_code_fences(optimized)
        logger.info("Script optimized successfully, new length: %d characters", len(optimized))
        return optimized

    async def enhance_video_prompt(self, prompt: str, target_model: str = "sora") -> str:
        """Turn a short video idea into a cinematic generation prompt.

        Uses the LLM when a key is configured; otherwise, or when the LLM
        returns nothing, a deterministic local enhancement is returned.
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt is required")

        logger.info("Enhancing prompt for: %s", target_model)
        if self._llm.configured:
            model_name = _MODEL_NAMES.get(target_model, _MODEL_NAMES["sora"])
            enhanced = await self._llm.call(
                ENHANCE_SYSTEM_PROMPT.format(model_name=model_name),
                f'Enhance this video prompt: "{prompt}"',
                model=self._prompt_model,
                max_tokens=300,
                temperature=0.7,
                caller="prompt_enhance",
            )
            enhanced = enhanced.strip()
            if enhanced:
                return enhanced

        enhanced = local_prompt_enhancement(prompt, target_model)
        logger.info("Enhanced prompt (fallback): %s", enhanced)
        return enhanced
