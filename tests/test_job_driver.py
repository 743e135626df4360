"""Tests for the job driver and the in-process job registry."""
import asyncio
import base64
import json
from datetime import timedelta

import httpx
import pytest

from conftest import make_settings, mock_client

from castforge.errors import ConfigurationError, ValidationError, VendorApiError
from castforge.schemas.jobs import JobKind, JobSpec, Vendor
from castforge.schemas.webhook import WebhookConfig
from castforge.services.ad_video import AD_VOICE_ID, build_ad_specs
from castforge.services.job_driver import JobDriver, JobRegistry
from castforge.services.normalizer import TIMEOUT_MESSAGE
from castforge.services.relay import ProxyRelay
from castforge.services.tts_service import SpeechService
from castforge.services.webhook import VIDEO_GENERATED, WebhookNotifier

KLING_SPEC = JobSpec(kind=JobKind.TEXT_TO_VIDEO, vendor=Vendor.KLING, payload={"prompt": "a quiet harbour"})


class KieVendor:
    """Fake KIE API: creates task k-1 and walks it through the given states."""

    def __init__(self, *states):
        self.states = list(states)
        self.status_calls = 0
        self.created = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/generate"):
            self.created.append(json.loads(request.content))
            return httpx.Response(200, json={"code": 200, "msg": "success", "data": {"taskId": "k-1"}})

        state = self.states[min(self.status_calls, len(self.states) - 1)]
        self.status_calls += 1
        data = {"taskId": "k-1", "state": state}
        if state == "success":
            data["videoInfo"] = {"videoUrl": "https://x/video.mp4"}
        if state == "fail":
            data["failMsg"] = "content policy"
        return httpx.Response(200, json={"code": 200, "msg": "success", "data": data})


class AdVendors:
    """Fake JoggAI and Replicate APIs, dispatched on host and path."""

    def __init__(self, jogg=None, video=(201, {"id": "vid-1", "status": "starting"})):
        self.jogg = jogg or {"code": 0, "msg": "ok", "data": {"video_id": 77}}
        self.video = video
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "api.jogg.ai":
            return httpx.Response(200, json=self.jogg)
        if request.url.path.endswith("/flux-schnell/predictions"):
            return httpx.Response(201, json={"id": "img-1", "status": "succeeded", "output": ["https://x/base.webp"]})
        if request.url.path == "/v1/predictions":
            status, body = self.video
            return httpx.Response(status, json=body)
        if request.url.path.startswith("/v1/predictions/"):
            return httpx.Response(200, json={"id": "vid-1", "status": "succeeded", "output": "https://x/ad.mp4"})
        raise AssertionError(f"unexpected request {request.method} {request.url}")

    def bodies(self, path_suffix):
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith(path_suffix)]


def _driver(settings, handler, notifier=None):
    relay = ProxyRelay(settings, http_client=mock_client(handler))
    return JobDriver(settings, relay, notifier=notifier)


class TestJobDriver:

    @pytest.mark.asyncio
    async def test_run_to_success(self, settings):
        vendor = KieVendor("queueing", "processing", "success")
        seen = []

        result = await _driver(settings, vendor).run(KLING_SPEC, on_progress=seen.append, interval=0)

        assert result.ok
        assert result.media_url == "https://x/video.mp4"
        assert vendor.created[0]["prompt"] == "a quiet harbour"
        assert vendor.status_calls == 3
        assert seen == ["processing", "processing"]

    @pytest.mark.asyncio
    async def test_vendor_failure_becomes_failed_result(self, settings):
        result = await _driver(settings, KieVendor("fail")).run(KLING_SPEC, interval=0)

        assert not result.ok
        assert result.error == "Generation failed: content policy"

    @pytest.mark.asyncio
    async def test_timeout_becomes_failed_result(self, settings):
        vendor = KieVendor("processing")

        result = await _driver(settings, vendor).run(KLING_SPEC, max_attempts=3, interval=0)

        assert result.error == TIMEOUT_MESSAGE
        assert vendor.status_calls == 3

    @pytest.mark.asyncio
    async def test_validation_error_before_network(self, settings):
        vendor = KieVendor("success")
        spec = JobSpec(kind=JobKind.LIP_SYNC, vendor=Vendor.KLING, payload={})

        result = await _driver(settings, vendor).run(spec)

        assert not result.ok
        assert "Lip-sync" in result.error
        assert vendor.created == []

    @pytest.mark.asyncio
    async def test_resume_with_existing_handle(self, settings):
        vendor = KieVendor("success")
        driver = _driver(settings, vendor)
        handle = await driver.submit(KLING_SPEC)
        vendor.created.clear()

        result = await driver.run(KLING_SPEC, handle=handle, interval=0)

        assert result.ok
        assert vendor.created == []

    @pytest.mark.asyncio
    async def test_submit_rejects_audio(self, settings):
        spec = JobSpec(kind=JobKind.AUDIO, vendor=Vendor.ELEVENLABS, payload={"script": "Hallo"})
        with pytest.raises(ValidationError):
            await _driver(settings, KieVendor("success")).submit(spec)

    def test_client_for_rejects_audio_vendor(self, settings):
        with pytest.raises(ValidationError):
            _driver(settings, KieVendor("success")).client_for(Vendor.ELEVENLABS)

    @pytest.mark.asyncio
    async def test_audio_job_returns_data_url(self, settings):
        def handler(request):
            assert request.url.path.endswith("/text-to-speech/voice-1")
            return httpx.Response(200, content=b"ID3audio")

        relay = ProxyRelay(settings, http_client=mock_client(handler))
        speech = SpeechService(settings, relay.credentials, http_client=mock_client(handler))
        driver = JobDriver(settings, relay, speech=speech)
        spec = JobSpec(kind=JobKind.AUDIO, vendor=Vendor.ELEVENLABS, payload={"script": "Hallo", "voice_id": "voice-1"})

        result = await driver.run(spec)

        assert result.ok
        assert result.media_url == "data:audio/mpeg;base64," + base64.b64encode(b"ID3audio").decode()

    @pytest.mark.asyncio
    async def test_success_notifies_webhook(self, settings):
        posted = []

        def hook(request):
            posted.append(json.loads(request.content))
            return httpx.Response(200)

        notifier = WebhookNotifier(
            WebhookConfig(enabled=True, webhook_url="https://hooks.example/n8n"),
            http_client=mock_client(hook),
        )

        result = await _driver(settings, KieVendor("success"), notifier=notifier).run(KLING_SPEC, interval=0)
        await notifier.drain()

        assert result.ok
        assert posted[0]["event"] == VIDEO_GENERATED
        assert posted[0]["data"]["video_url"] == "https://x/video.mp4"
        assert posted[0]["data"]["task_id"] == "k-1"

    @pytest.mark.asyncio
    async def test_rate_limited_video_keeps_base_image(self, settings):
        vendors = AdVendors(video=(429, {"detail": "throttled"}))
        driver = _driver(settings, vendors)
        spec = JobSpec(kind=JobKind.TEXT_TO_VIDEO, vendor=Vendor.REPLICATE, payload={"prompt": "two hosts"})

        with pytest.raises(VendorApiError) as exc_info:
            await driver.submit(spec)

        error = exc_info.value
        assert error.base_image_url == "https://x/base.webp"
        assert error.to_dict() == {
            "error": "Replicate rate limit reached: throttled",
            "type": "VendorApiError",
            "retryAfter": 10,
            "baseImageUrl": "https://x/base.webp",
        }

        vendors.video = (201, {"id": "vid-1", "status": "starting"})
        vendors.requests.clear()
        retry = JobSpec(
            kind=JobKind.TEXT_TO_VIDEO,
            vendor=Vendor.REPLICATE,
            payload={"prompt": "two hosts", "existing_base_image": error.base_image_url},
        )

        handle = await driver.submit(retry)

        assert handle.task_id == "vid-1"
        assert [r.url.path for r in vendors.requests] == ["/v1/predictions"]
        assert vendors.bodies("/v1/predictions")[0]["input"]["input_image"] == "https://x/base.webp"

    @pytest.mark.asyncio
    async def test_credit_exhaustion_keeps_base_image(self, settings):
        vendors = AdVendors(video=(402, {"detail": "Insufficient credit"}))
        spec = JobSpec(kind=JobKind.TEXT_TO_VIDEO, vendor=Vendor.REPLICATE, payload={"prompt": "two hosts"})

        with pytest.raises(VendorApiError) as exc_info:
            await _driver(settings, vendors).submit(spec)

        assert exc_info.value.status_code == 402
        assert exc_info.value.to_dict()["baseImageUrl"] == "https://x/base.webp"


class TestSubmitFirst:

    @pytest.mark.asyncio
    async def test_first_vendor_wins(self, settings):
        vendors = AdVendors()

        spec, handle = await _driver(settings, vendors).submit_first(build_ad_specs("Buy now", "9:16"))

        assert spec.vendor == Vendor.JOGGAI
        assert handle.task_id == "77"
        body = vendors.bodies("/create_video_from_avatar")[0]
        assert body["avatar"] == {"avatar_id": 412, "avatar_type": 0}
        assert body["voice"] == {"type": "script", "script": "Buy now", "voice_id": AD_VOICE_ID}
        assert body["aspect_ratio"] == "portrait"
        assert body["caption"] is True
        assert body["video_name"].startswith("Ad Video - ")
        assert vendors.bodies("/v1/predictions") == []

    @pytest.mark.asyncio
    async def test_unconfigured_vendor_falls_back(self):
        vendors = AdVendors()
        driver = _driver(make_settings(REPLICATE_API_KEY="env-replicate-key"), vendors)

        spec, handle = await driver.submit_first(build_ad_specs("Buy now"))

        assert spec.vendor == Vendor.REPLICATE
        assert handle.task_id == "vid-1"
        assert all(r.url.host != "api.jogg.ai" for r in vendors.requests)
        image_prompt = vendors.bodies("/flux-schnell/predictions")[0]["input"]["prompt"]
        assert image_prompt.startswith("Buy now. Style: Cinematic advertisement")

    @pytest.mark.asyncio
    async def test_vendor_error_falls_back(self, settings):
        vendors = AdVendors(jogg={"code": 10001, "msg": "insufficient credits", "data": None})

        spec, handle = await _driver(settings, vendors).submit_first(build_ad_specs("Buy now"))

        assert spec.vendor == Vendor.REPLICATE
        assert handle.task_id == "vid-1"

    @pytest.mark.asyncio
    async def test_all_vendors_failing_raises_last_error(self):
        vendors = AdVendors()

        with pytest.raises(ConfigurationError, match="REPLICATE_API_KEY"):
            await _driver(make_settings(), vendors).submit_first(build_ad_specs("Buy now"))

        assert vendors.requests == []

    @pytest.mark.asyncio
    async def test_invalid_input_does_not_fall_back(self, settings):
        vendors = AdVendors()
        specs = [
            JobSpec(kind=JobKind.AVATAR_VIDEO, vendor=Vendor.JOGGAI,
                    payload={"script": "hi", "avatar_type": "photo"}),
            JobSpec(kind=JobKind.TEXT_TO_VIDEO, vendor=Vendor.REPLICATE, payload={"prompt": "hi"}),
        ]

        with pytest.raises(ValidationError, match="avatar_type"):
            await _driver(settings, vendors).submit_first(specs)

        assert vendors.requests == []

    @pytest.mark.parametrize("prompt, aspect_ratio", [("   ", "16:9"), ("Buy now", "4:3")])
    def test_ad_specs_reject_bad_input(self, prompt, aspect_ratio):
        with pytest.raises(ValidationError):
            build_ad_specs(prompt, aspect_ratio)


class TestJobRegistry:

    @pytest.mark.asyncio
    async def test_job_runs_in_background_and_publishes(self, settings):
        published = []

        async def publish(job_id, state, **extra):
            published.append((state, extra))

        registry = JobRegistry(_driver(settings, KieVendor("processing", "success")), publish=publish)

        record = await registry.start(KLING_SPEC, interval=0)
        assert record.handle.task_id == "k-1"
        await record.task

        assert record.state == "succeeded"
        assert record.result.media_url == "https://x/video.mp4"
        assert [state for state, _ in published] == ["processing", "succeeded"]
        assert published[-1][1]["result"]["ok"] is True
        assert registry.get(record.job_id) is record

    @pytest.mark.asyncio
    async def test_submit_errors_reach_the_caller(self):
        settings = make_settings()
        vendor = KieVendor("success")
        registry = JobRegistry(_driver(settings, vendor))

        with pytest.raises(ConfigurationError):
            await registry.start(KLING_SPEC)

        assert registry.list() == []
        assert vendor.created == []

    @pytest.mark.asyncio
    async def test_cancel_stops_polling(self, settings):
        vendor = KieVendor("processing")
        registry = JobRegistry(_driver(settings, vendor))

        record = await registry.start(KLING_SPEC, max_attempts=1000, interval=10)
        await asyncio.sleep(0.05)
        registry.cancel(record.job_id)
        await asyncio.wait_for(record.task, timeout=2)

        assert record.state == "cancelled"
        assert record.result.error == "Generation was cancelled."
        assert vendor.status_calls == 1

    @pytest.mark.asyncio
    async def test_list_is_newest_first_and_unknown_cancel(self, settings):
        registry = JobRegistry(_driver(settings, KieVendor("success")))

        first = await registry.start(KLING_SPEC, interval=0)
        second = await registry.start(KLING_SPEC, interval=0)
        await asyncio.gather(first.task, second.task)

        assert [r.job_id for r in registry.list()] == [second.job_id, first.job_id]
        assert registry.cancel("missing") is None

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_jobs(self, settings):
        registry = JobRegistry(_driver(settings, KieVendor("processing")))
        record = await registry.start(KLING_SPEC, max_attempts=1000, interval=10)
        await asyncio.sleep(0.02)

        await registry.shutdown()

        assert record.task.done()
        assert record.state == "cancelled"

    @pytest.mark.asyncio
    async def test_start_first_records_the_accepting_vendor(self):
        vendors = AdVendors()
        registry = JobRegistry(_driver(make_settings(REPLICATE_API_KEY="env-replicate-key"), vendors))

        record = await registry.start_first(build_ad_specs("Buy now"), max_attempts=1, interval=0)
        await asyncio.wait_for(record.task, timeout=2)

        assert record.spec.vendor == Vendor.REPLICATE
        assert record.handle.task_id == "vid-1"
        assert record.result.media_url == "https://x/ad.mp4"
        assert registry.get(record.job_id) is record

    @pytest.mark.asyncio
    async def test_finished_jobs_expire(self, settings):
        registry = JobRegistry(_driver(settings, KieVendor("success")), retention_seconds=60)
        record = await registry.start(KLING_SPEC, interval=0)
        await record.task

        assert registry.get(record.job_id) is record

        record.updated_at -= timedelta(minutes=2)

        assert registry.get(record.job_id) is None
        assert registry.list() == []

    @pytest.mark.asyncio
    async def test_running_jobs_are_never_evicted(self, settings):
        registry = JobRegistry(_driver(settings, KieVendor("processing")), retention_seconds=0, max_records=0)
        record = await registry.start(KLING_SPEC, max_attempts=1000, interval=10)
        record.updated_at -= timedelta(days=1)

        assert registry.get(record.job_id) is record

        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_max_records_drops_oldest_finished(self, settings):
        registry = JobRegistry(_driver(settings, KieVendor("success")), max_records=2)

        records = []
        for _ in range(3):
            record = await registry.start(KLING_SPEC, interval=0)
            await record.task
            records.append(record)

        assert [r.job_id for r in registry.list()] == [records[2].job_id, records[1].job_id]
        assert registry.get(records[0].job_id) is None
