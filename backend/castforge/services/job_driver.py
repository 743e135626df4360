"""Async job driver: submit a vendor job, poll it, normalize the outcome.

    JobSpec → vendor adapter → relay create-call → JobHandle
            → poller (relay status-calls) → raw terminal response
            → normalizer → NormalizedResult

Audio jobs (ElevenLabs) are synchronous and skip the poll stage.

``JobRegistry`` runs drivers as independent asyncio tasks for the API, keeps
an in-memory record per job and publishes state changes to Redis.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from castforge.config import Settings
from castforge.errors import (
    CastForgeError,
    ConfigurationError,
    PollingCancelledError,
    TransportError,
    ValidationError,
    VendorApiError,
)
from castforge.schemas.jobs import (
    JobHandle,
    JobKind,
    JobRead,
    JobSpec,
    NormalizedResult,
    Vendor,
)
from castforge.services.normalizer import from_error, normalize
from castforge.services.poller import ProgressCallback, poll_until_complete
from castforge.services.relay import ProxyRelay
from castforge.services.tts_service import SpeechService
from castforge.services.vendors import VIDEO_CLIENTS
from castforge.services.webhook import AUDIO_GENERATED, VIDEO_GENERATED, WebhookNotifier

logger = logging.getLogger(__name__)

Publisher = Callable[..., Awaitable[None]]


class JobDriver:
    """Drive one job spec to a NormalizedResult."""

    def __init__(
        self,
        settings: Settings,
        relay: ProxyRelay,
        speech: SpeechService | None = None,
        notifier: WebhookNotifier | None = None,
    ):
        self._settings = settings
        self._relay = relay
        self._speech = speech or SpeechService(settings, relay.credentials)
        self._notifier = notifier

    def client_for(self, vendor: Vendor, api_key: str | None = None):
        try:
            client_cls = VIDEO_CLIENTS[vendor]
        except KeyError:
            raise ValidationError(f"{vendor.value} does not run video jobs")
        return client_cls(self._relay, api_key)

    async def submit(self, spec: JobSpec, api_key: str | None = None) -> JobHandle:
        """Validate, build and send the vendor create-call."""
        if spec.kind == JobKind.AUDIO:
            raise ValidationError("audio jobs are synthesized directly and have no task handle")
        client = self.client_for(spec.vendor, api_key)
        task_id = await client.create(spec)
        logger.info("Submitted %s job to %s: task=%s", spec.kind.value, spec.vendor.value, task_id)
        return JobHandle(task_id=task_id, vendor=spec.vendor, kind=spec.kind)

    async def submit_first(self, specs: Sequence[JobSpec]) -> tuple[JobSpec, JobHandle]:
        """Submit the first spec a vendor accepts, trying them in order.

        Server-side keys only. A vendor that is not configured, rejects the
        request or cannot be reached hands over to the next spec; invalid
        input does not. When every vendor fails, the last error is raised.
        """
        if not specs:
            raise ValidationError("no job specs to submit")
        last_error: CastForgeError | None = None
        for spec in specs:
            try:
                return spec, await self.submit(spec)
            except (ConfigurationError, VendorApiError, TransportError) as e:
                logger.warning("%s submission failed, falling back: %s", spec.vendor.value, e)
                last_error = e
        raise last_error

    async def wait(
        self,
        handle: JobHandle,
        *,
        api_key: str | None = None,
        on_progress: ProgressCallback | None = None,
        max_attempts: int | None = None,
        interval: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Any:
        """Poll the vendor until the job is terminal; returns the raw success response."""
        client = self.client_for(handle.vendor, api_key)
        return await poll_until_complete(
            handle.task_id,
            client.get_status,
            client.parse_status,
            on_progress=on_progress,
            max_attempts=max_attempts or self._settings.POLL_MAX_ATTEMPTS,
            interval=self._settings.POLL_INTERVAL_SECONDS if interval is None else interval,
            cancel_event=cancel_event,
            label=f"{handle.vendor.value} {handle.kind.value}",
        )

    async def _synthesize(self, spec: JobSpec, api_key: str | None) -> dict[str, Any]:
        if spec.vendor != Vendor.ELEVENLABS:
            raise ValidationError(f"{spec.vendor.value} cannot run audio jobs")
        audio = await self._speech.synthesize(
            spec.payload.get("script", ""), spec.payload.get("voice_id"), api_key=api_key,
        )
        return {"audio_content": audio}

    async def run(
        self,
        spec: JobSpec,
        *,
        api_key: str | None = None,
        handle: JobHandle | None = None,
        on_progress: ProgressCallback | None = None,
        max_attempts: int | None = None,
        interval: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> NormalizedResult:
        """Run a job end to end. Structured errors become a failed result.

        Pass ``handle`` to resume polling a job that was already submitted.
        """
        try:
            if spec.kind == JobKind.AUDIO:
                raw = await self._synthesize(spec, api_key)
            else:
                if handle is None:
                    handle = await self.submit(spec, api_key)
                raw = await self.wait(
                    handle,
                    api_key=api_key,
                    on_progress=on_progress,
                    max_attempts=max_attempts,
                    interval=interval,
                    cancel_event=cancel_event,
                )
            result = normalize(spec.vendor, raw)
        except CastForgeError as e:
            logger.warning("%s %s job ended with %s: %s", spec.vendor.value, spec.kind.value, type(e).__name__, e)
            return from_error(e)

        if result.ok and self._notifier is not None:
            if spec.kind == JobKind.AUDIO:
                self._notifier.notify(AUDIO_GENERATED, {"vendor": spec.vendor.value})
            else:
                self._notifier.notify(VIDEO_GENERATED, {
                    "vendor": spec.vendor.value,
                    "kind": spec.kind.value,
                    "task_id": handle.task_id if handle else None,
                    "video_url": result.media_url,
                })
        return result


# ---------------------------------------------------------------------------
# In-process registry for API-driven jobs
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobRecord:
    job_id: str
    spec: JobSpec
    state: str = "pending"
    handle: JobHandle | None = None
    result: NormalizedResult | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task | None = None

    @property
    def finished(self) -> bool:
        return self.task is not None and self.task.done()

    def touch(self, state: str) -> None:
        self.state = state
        self.updated_at = _utcnow()

    def to_read(self) -> JobRead:
        return JobRead(
            job_id=self.job_id,
            kind=self.spec.kind,
            vendor=self.spec.vendor,
            state=self.state,
            task_id=self.handle.task_id if self.handle else None,
            result=self.result,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class JobRegistry:
    """Tracks background jobs started through the API. Event-loop local.

    Finished records are evicted once they are older than
    ``retention_seconds`` (by ``updated_at``), and the oldest finished ones
    go first when more than ``max_records`` are held. Running jobs are
    never evicted.
    """

    def __init__(
        self,
        driver: JobDriver,
        publish: Publisher | None = None,
        retention_seconds: float | None = None,
        max_records: int | None = None,
    ):
        self._driver = driver
        self._publish = publish
        self._retention_seconds = retention_seconds
        self._max_records = max_records
        self._jobs: dict[str, JobRecord] = {}

    async def _notify(self, record: JobRecord, **extra: Any) -> None:
        if self._publish is None:
            return
        result = self._publish(record.job_id, record.state, **extra)
        if inspect.isawaitable(result):
            await result

    def _evict(self) -> None:
        finished = [r for r in self._jobs.values() if r.finished]
        if self._retention_seconds is not None:
            cutoff = _utcnow() - timedelta(seconds=self._retention_seconds)
            for record in finished:
                if record.updated_at < cutoff:
                    del self._jobs[record.job_id]
            finished = [r for r in finished if r.job_id in self._jobs]

        if self._max_records is not None and len(self._jobs) > self._max_records:
            excess = len(self._jobs) - self._max_records
            for record in sorted(finished, key=lambda r: r.updated_at)[:excess]:
                del self._jobs[record.job_id]

    def _launch(self, record: JobRecord, **kwargs: Any) -> JobRecord:
        self._jobs[record.job_id] = record
        record.task = asyncio.create_task(self._drive(record, **kwargs), name=f"job-{record.job_id}")
        self._evict()
        logger.info("Job %s started (%s/%s)", record.job_id, record.spec.vendor.value, record.spec.kind.value)
        return record

    async def start(
        self,
        spec: JobSpec,
        *,
        api_key: str | None = None,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> JobRecord:
        """Submit the job now and poll it in the background.

        The create-call is awaited so that validation and credential errors
        reach the caller directly.
        """
        record = JobRecord(job_id=uuid.uuid4().hex, spec=spec)
        if spec.kind != JobKind.AUDIO:
            record.handle = await self._driver.submit(spec, api_key)
        return self._launch(record, api_key=api_key, max_attempts=max_attempts, interval=interval)

    async def start_first(
        self,
        specs: Sequence[JobSpec],
        *,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> JobRecord:
        """Like ``start``, with vendor fallback over ``specs`` (see ``JobDriver.submit_first``)."""
        spec, handle = await self._driver.submit_first(specs)
        record = JobRecord(job_id=uuid.uuid4().hex, spec=spec, handle=handle)
        return self._launch(record, max_attempts=max_attempts, interval=interval)

    async def _drive(self, record: JobRecord, **kwargs: Any) -> None:
        async def on_progress(state: str) -> None:
            if state != record.state:
                record.touch(state)
                await self._notify(record)

        try:
            result = await self._driver.run(
                record.spec,
                handle=record.handle,
                on_progress=on_progress,
                cancel_event=record.cancel_event,
                **kwargs,
            )
        except asyncio.CancelledError:
            record.result = from_error(PollingCancelledError(f"Job {record.job_id} cancelled"))
            record.touch("cancelled")
            raise

        record.result = result
        if record.cancel_event.is_set() and not result.ok:
            record.touch("cancelled")
        else:
            record.touch("succeeded" if result.ok else "failed")
        await self._notify(record, result=result.model_dump())

    def get(self, job_id: str) -> JobRecord | None:
        self._evict()
        return self._jobs.get(job_id)

    def list(self) -> list[JobRecord]:
        self._evict()
        return sorted(self._jobs.values(), key=lambda r: r.created_at, reverse=True)

    def cancel(self, job_id: str) -> JobRecord | None:
        """Revoke a running job; polling stops before its next status query."""
        record = self._jobs.get(job_id)
        if record is None:
            return None
        if record.task is not None and not record.task.done():
            record.cancel_event.set()
            if record.spec.kind == JobKind.AUDIO:
                record.task.cancel()
            logger.info("Job %s cancellation requested", job_id)
        return record

    async def shutdown(self) -> None:
        tasks = [r.task for r in self._jobs.values() if r.task is not None and not r.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
