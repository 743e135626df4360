from __future__ import annotations
"""Service container and FastAPI dependency providers.

Services are built once per application in the lifespan and stored on
``app.state.services``; routes reach them through the ``get_*`` providers
below, which tests can replace with ``app.dependency_overrides``.
"""

from dataclasses import dataclass

import httpx
from fastapi import Request

from castforge.config import Settings
from castforge.services.credentials import CredentialResolver
from castforge.services.export_service import DriveExporter
from castforge.services.job_driver import JobDriver, JobRegistry, Publisher
from castforge.services.llm_client import LLMClient
from castforge.services.relay import ProxyRelay
from castforge.services.script_service import ScriptService
from castforge.services.tts_service import SpeechService
from castforge.services.webhook import WebhookNotifier, config_from_settings


@dataclass
class Services:
    settings: Settings
    relay: ProxyRelay
    speech: SpeechService
    notifier: WebhookNotifier
    driver: JobDriver
    registry: JobRegistry
    llm: LLMClient
    scripts: ScriptService
    exporter: DriveExporter

    async def aclose(self) -> None:
        await self.registry.shutdown()
        await self.notifier.drain()
        await self.relay.aclose()
        await self.llm.aclose()


def build_services(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
    publish: Publisher | None = None,
) -> Services:
    """Wire every service from one Settings object."""
    credentials = CredentialResolver(settings)
    relay = ProxyRelay(settings, credentials, http_client=http_client)
    speech = SpeechService(settings, credentials, http_client=http_client)
    notifier = WebhookNotifier(
        config_from_settings(settings), http_client=http_client, timeout=settings.WEBHOOK_TIMEOUT,
    )
    driver = JobDriver(settings, relay, speech, notifier)
    llm = LLMClient(settings, http_client=http_client)
    return Services(
        settings=settings,
        relay=relay,
        speech=speech,
        notifier=notifier,
        driver=driver,
        registry=JobRegistry(
            driver,
            publish=publish,
            retention_seconds=settings.JOB_RETENTION_SECONDS,
            max_records=settings.JOB_MAX_RECORDS,
        ),
        llm=llm,
        scripts=ScriptService(llm, settings.SCRIPT_LANGUAGE, settings.PROMPT_MODEL),
        exporter=DriveExporter(settings, http_client=http_client),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_relay(request: Request) -> ProxyRelay:
    return get_services(request).relay


def get_registry(request: Request) -> JobRegistry:
    return get_services(request).registry


def get_scripts(request: Request) -> ScriptService:
    return get_services(request).scripts


def get_speech(request: Request) -> SpeechService:
    return get_services(request).speech


def get_notifier(request: Request) -> WebhookNotifier:
    return get_services(request).notifier


def get_exporter(request: Request) -> DriveExporter:
    return get_services(request).exporter
