"""API tests through FastAPI's TestClient, with vendors behind httpx.MockTransport."""
import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import make_settings, mock_client

from castforge.api.deps import build_services
from castforge.main import app


class VendorStub:
    """Answers by (method, host, path); unknown routes get a 404 JSON body."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, url, status=200, json=None, content=None):
        parsed = httpx.URL(url)
        self.routes[(method, parsed.host, parsed.path)] = (status, json, content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.host, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"error": "not found"})
        status, body, content = self.routes[key]
        if content is not None:
            return httpx.Response(status, content=content)
        return httpx.Response(status, json=body)


@pytest.fixture
def vendor():
    return VendorStub()


@pytest.fixture
def client(settings, vendor):
    with TestClient(app) as test_client:
        app.state.services = build_services(settings, http_client=mock_client(vendor))
        yield test_client


@pytest.fixture
def bare_client(vendor):
    """No server-side keys configured."""
    with TestClient(app) as test_client:
        app.state.services = build_services(make_settings(), http_client=mock_client(vendor))
        yield test_client


class TestRoot:

    def test_root(self, client):
        assert client.get("/").json() == {"service": "CastForge", "status": "running"}

    def test_health_reports_configured_vendors(self, bare_client):
        body = bare_client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["vendors"]["joggai"] is False
        assert body["llm"] is False


class TestProxyRoute:

    def test_passthrough(self, client, vendor):
        vendor.add("GET", "https://api.jogg.ai/v2/avatars/public", json={"code": 0, "data": []})

        resp = client.post("/api/proxy/joggai", json={"endpoint": "/avatars/public", "method": "GET"})

        assert resp.status_code == 200
        assert resp.json() == {"code": 0, "data": []}
        assert vendor.requests[0].headers["x-api-key"] == "env-jogg-key"

    def test_vendor_error_status_forwarded(self, client, vendor):
        vendor.add("POST", "https://tavusapi.com/v2/videos", status=422, json={"error": "replica_id missing"})

        resp = client.post("/api/proxy/tavus", json={"endpoint": "/videos", "method": "POST", "payload": {}})

        assert resp.status_code == 422
        assert resp.json() == {"error": "replica_id missing"}

    def test_non_json_becomes_502(self, client, vendor):
        vendor.add("GET", "https://api.replicate.com/v1/predictions/p1", status=500, content=b"<html>oops</html>")

        resp = client.post("/api/proxy/replicate", json={"endpoint": "/predictions/p1"})

        assert resp.status_code == 502
        assert resp.json()["snippet"] == "<html>oops</html>"

    def test_unknown_vendor(self, client):
        assert client.post("/api/proxy/acme", json={"endpoint": "/x"}).status_code == 404

    def test_missing_key_is_500_with_vendor_error_shape(self, bare_client, vendor):
        resp = bare_client.post("/api/proxy/joggai", json={"endpoint": "/voices"})

        assert resp.status_code == 500
        assert resp.json()["code"] == -1
        assert "JOGGAI_API_KEY" in resp.json()["msg"]
        assert vendor.requests == []

    def test_callers_key_is_used(self, bare_client, vendor):
        vendor.add("GET", "https://api.kie.ai/api/v1/runway/record-detail", json={"code": 200, "data": {}})

        resp = bare_client.post("/api/proxy/kling", json={
            "endpoint": "/api/v1/runway/record-detail?taskId=t1", "apiKey": "browser-key",
        })

        assert resp.status_code == 200
        assert vendor.requests[0].headers["authorization"] == "Bearer browser-key"

    def test_absolute_endpoint_rejected(self, client):
        resp = client.post("/api/proxy/tavus", json={"endpoint": "https://evil.example/x"})
        assert resp.status_code == 400
        assert "error" in resp.json()


class TestJobRoutes:

    def _kie(self, vendor, state="success"):
        vendor.add("POST", "https://api.kie.ai/api/v1/runway/generate",
                   json={"code": 200, "msg": "success", "data": {"taskId": "k-9"}})
        data = {"taskId": "k-9", "state": state}
        if state == "success":
            data["videoInfo"] = {"videoUrl": "https://x/video.mp4"}
        vendor.add("GET", "https://api.kie.ai/api/v1/runway/record-detail", json={"code": 200, "data": data})

    def _wait_for(self, client, job_id, state):
        body = None
        for _ in range(200):
            body = client.get(f"/api/jobs/{job_id}").json()
            if body["state"] == state:
                return body
            time.sleep(0.01)
        raise AssertionError(f"job stayed in {body['state']}")

    def test_job_lifecycle(self, client, vendor):
        self._kie(vendor)

        resp = client.post("/api/jobs/", json={
            "kind": "text-to-video", "vendor": "kling",
            "payload": {"prompt": "city lights"}, "interval_seconds": 0,
        })

        assert resp.status_code == 202
        created = resp.json()
        assert created["task_id"] == "k-9"
        done = self._wait_for(client, created["job_id"], "succeeded")
        assert done["result"] == {"ok": True, "media_url": "https://x/video.mp4", "error": None}
        assert created["job_id"] in [j["job_id"] for j in client.get("/api/jobs/").json()]

    def test_cancel(self, client, vendor):
        self._kie(vendor, state="processing")

        created = client.post("/api/jobs/", json={
            "kind": "text-to-video", "vendor": "kling",
            "payload": {"prompt": "city lights"}, "interval_seconds": 5, "max_attempts": 100,
        }).json()
        assert client.delete(f"/api/jobs/{created['job_id']}").status_code == 200

        cancelled = self._wait_for(client, created["job_id"], "cancelled")
        assert cancelled["result"]["error"] == "Generation was cancelled."

    def test_validation_error_is_400(self, client, vendor):
        resp = client.post("/api/jobs/", json={"kind": "lip-sync", "vendor": "kling", "payload": {}})

        assert resp.status_code == 400
        assert resp.json()["type"] == "ValidationError"
        assert vendor.requests == []

    def test_unknown_job(self, client):
        assert client.get("/api/jobs/nope").status_code == 404
        assert client.delete("/api/jobs/nope").status_code == 404

    def test_non_numeric_avatar_type_is_400(self, client, vendor):
        resp = client.post("/api/jobs/", json={
            "kind": "avatar-video", "vendor": "joggai", "payload": {"script": "hi", "avatar_type": "photo"},
        })

        assert resp.status_code == 400
        assert resp.json()["type"] == "ValidationError"
        assert "avatar_type" in resp.json()["error"]
        assert vendor.requests == []

    def test_rate_limit_body_carries_base_image(self, client, vendor):
        vendor.add("POST", "https://api.replicate.com/v1/models/black-forest-labs/flux-schnell/predictions",
                   status=201, json={"id": "img-1", "status": "succeeded", "output": ["https://x/base.webp"]})
        vendor.add("POST", "https://api.replicate.com/v1/predictions", status=429, json={"detail": "throttled"})

        resp = client.post("/api/jobs/", json={
            "kind": "text-to-video", "vendor": "replicate", "payload": {"prompt": "two hosts"},
        })

        assert resp.status_code == 429
        assert resp.json()["baseImageUrl"] == "https://x/base.webp"
        assert resp.json()["retryAfter"] == 10
        assert client.get("/api/jobs/").json() == []

    def test_ad_video_prefers_joggai(self, client, vendor):
        vendor.add("POST", "https://api.jogg.ai/v2/create_video_from_avatar",
                   json={"code": 0, "data": {"video_id": 77}})
        vendor.add("GET", "https://api.jogg.ai/v2/avatar_video/77",
                   json={"code": 0, "data": {"status": "completed", "video_url": "https://x/ad.mp4"}})

        resp = client.post("/api/jobs/ad", json={"prompt": "Buy now", "aspectRatio": "1:1", "interval_seconds": 0})

        assert resp.status_code == 202
        assert resp.json()["vendor"] == "joggai"
        assert resp.json()["task_id"] == "77"
        done = self._wait_for(client, resp.json()["job_id"], "succeeded")
        assert done["result"]["media_url"] == "https://x/ad.mp4"

    def test_ad_video_falls_back_to_replicate(self, client, vendor):
        vendor.add("POST", "https://api.jogg.ai/v2/create_video_from_avatar",
                   json={"code": 40001, "msg": "insufficient credits", "data": None})
        vendor.add("POST", "https://api.replicate.com/v1/models/black-forest-labs/flux-schnell/predictions",
                   status=201, json={"id": "img-1", "status": "succeeded", "output": ["https://x/base.webp"]})
        vendor.add("POST", "https://api.replicate.com/v1/predictions",
                   status=201, json={"id": "vid-1", "status": "starting"})
        vendor.add("GET", "https://api.replicate.com/v1/predictions/vid-1",
                   json={"id": "vid-1", "status": "succeeded", "output": "https://x/clip.mp4"})

        resp = client.post("/api/jobs/ad", json={"prompt": "Buy now", "interval_seconds": 0})

        assert resp.status_code == 202
        assert resp.json()["vendor"] == "replicate"
        done = self._wait_for(client, resp.json()["job_id"], "succeeded")
        assert done["result"]["media_url"] == "https://x/clip.mp4"

    def test_ad_video_without_keys(self, bare_client, vendor):
        resp = bare_client.post("/api/jobs/ad", json={"prompt": "Buy now"})

        assert resp.status_code == 500
        assert resp.json()["type"] == "ConfigurationError"
        assert vendor.requests == []

    def test_ad_video_rejects_unknown_aspect_ratio(self, client):
        assert client.post("/api/jobs/ad", json={"prompt": "Buy now", "aspectRatio": "4:3"}).status_code == 422


class TestPodcastRoutes:

    def test_script_without_llm_key_is_configuration_error(self, bare_client):
        resp = bare_client.post("/api/podcast/script", json={"config": {"topics": "KI"}})

        assert resp.status_code == 500
        assert resp.json()["type"] == "ConfigurationError"

    def test_script_variants(self, vendor):
        vendor.add("POST", "https://openrouter.ai/api/v1/chat/completions", json={
            "choices": [{"message": {"content": '[{"id": 1, "content": "Hallo"}]'}}],
        })
        with TestClient(app) as test_client:
            app.state.services = build_services(make_settings(LLM_API_KEY="llm-key"), http_client=mock_client(vendor))

            resp = test_client.post("/api/podcast/script", json={"config": {"topics": "KI"}, "variantCount": 1})

        assert resp.status_code == 200
        assert resp.json() == {"variants": [{"id": 1, "content": "Hallo"}]}

    def test_prompt_enhance_falls_back_locally(self, bare_client):
        resp = bare_client.post("/api/podcast/prompt/enhance", json={"prompt": "harbour", "targetModel": "sora"})

        assert resp.status_code == 200
        assert resp.json()["enhancedPrompt"].startswith("Cinematic 4K video: harbour.")

    def test_audio(self, client, vendor):
        vendor.add("POST", "https://api.elevenlabs.io/v1/text-to-speech/JBFqnCBsd6RMkjVDRZzb", content=b"mp3")

        resp = client.post("/api/podcast/audio", json={"script": "Hallo [PAUSE] Welt"})

        assert resp.status_code == 200
        assert resp.json() == {"audioContent": "bXAz"}

    def test_audio_vendor_error(self, client, vendor):
        vendor.add("POST", "https://api.elevenlabs.io/v1/text-to-speech/v1", status=401, json={"detail": "bad"})

        resp = client.post("/api/podcast/audio", json={"script": "Hallo", "voiceId": "v1"})

        assert resp.status_code == 401
        assert resp.json()["type"] == "VendorApiError"


class TestCatalogueRoutes:

    def test_whoami_with_header_key(self, bare_client, vendor):
        vendor.add("GET", "https://api.jogg.ai/v2/user/whoami", json={"code": 0, "data": {"email": "a@b.c"}})

        resp = bare_client.get("/api/vendors/joggai/whoami", headers={"x-api-key": "mine"})

        assert resp.json() == {"valid": True, "account": {"email": "a@b.c"}}
        assert vendor.requests[0].headers["x-api-key"] == "mine"

    def test_tavus_replicas(self, client, vendor):
        vendor.add("GET", "https://tavusapi.com/v2/replicas", json={"data": [{"replica_id": "r1"}]})

        assert client.get("/api/vendors/tavus/replicas").json() == [{"replica_id": "r1"}]

    def test_upload_rejects_bad_base64(self, client):
        resp = client.post("/api/vendors/joggai/assets", json={"filename": "a.png", "contentBase64": "%%%"})
        assert resp.status_code == 400

    def test_create_photo_avatar(self, client, vendor):
        vendor.add("POST", "https://api.jogg.ai/v2/photo_avatar/photo/generate",
                   json={"code": 0, "data": {"avatar_id": 5, "status": "processing"}})

        resp = client.post("/api/vendors/joggai/photo-avatars", json={"photoUrl": "https://x/me.png", "name": "Me"})

        assert resp.status_code == 201
        assert resp.json() == {"avatar_id": 5, "status": "processing"}
        assert json.loads(vendor.requests[0].content) == {"photo_url": "https://x/me.png", "name": "Me"}

    def test_clone_voice(self, client, vendor):
        vendor.add("POST", "https://api.jogg.ai/v2/voice/clone", json={"code": 0, "data": {"voice_id": "cv-1"}})

        resp = client.post("/api/vendors/joggai/voices/clone", json={"audioUrl": "https://x/a.mp3", "name": "Anna"})

        assert resp.status_code == 201
        assert resp.json() == {"voice_id": "cv-1"}
        assert json.loads(vendor.requests[0].content) == {"audio_url": "https://x/a.mp3", "name": "Anna"}

    def test_clone_voice_needs_name(self, client, vendor):
        assert client.post("/api/vendors/joggai/voices/clone", json={"audioUrl": "https://x/a.mp3"}).status_code == 422
        assert vendor.requests == []

    def test_replica_lifecycle(self, client, vendor):
        vendor.add("POST", "https://tavusapi.com/v2/replicas", json={"replica_id": "r9", "status": "started"})
        vendor.add("GET", "https://tavusapi.com/v2/replicas/r9", json={"replica_id": "r9", "status": "completed"})
        vendor.add("DELETE", "https://tavusapi.com/v2/replicas/r9", json={})

        created = client.post("/api/vendors/tavus/replicas", json={
            "trainVideoUrl": "https://x/train.mp4", "replicaName": "Anna",
        })
        assert created.status_code == 201
        assert created.json()["replica_id"] == "r9"
        assert json.loads(vendor.requests[0].content) == {
            "train_video_url": "https://x/train.mp4", "replica_name": "Anna",
        }

        assert client.get("/api/vendors/tavus/replicas/r9").json()["status"] == "completed"
        assert client.delete("/api/vendors/tavus/replicas/r9").status_code == 204
        assert vendor.requests[-1].method == "DELETE"

    def test_unknown_replica_forwards_vendor_status(self, client):
        resp = client.get("/api/vendors/tavus/replicas/missing")

        assert resp.status_code == 404
        assert resp.json()["type"] == "VendorApiError"


class TestConfigurationRoutes:

    def test_crud(self, client):
        created = client.post("/api/configurations/", json={
            "name": "Weekly AI", "topics": "LLMs", "duration_minutes": 10,
        })
        assert created.status_code == 201
        config_id = created.json()["id"]

        assert client.get(f"/api/configurations/{config_id}").json()["topics"] == "LLMs"
        assert config_id in [c["id"] for c in client.get("/api/configurations/").json()]

        updated = client.patch(f"/api/configurations/{config_id}", json={"script": "Hallo"})
        assert updated.json()["script"] == "Hallo"
        assert updated.json()["name"] == "Weekly AI"

        assert client.delete(f"/api/configurations/{config_id}").status_code == 204
        assert client.get(f"/api/configurations/{config_id}").status_code == 404

    def test_validation(self, client):
        assert client.post("/api/configurations/", json={"name": ""}).status_code == 422
        assert client.patch("/api/configurations/missing", json={}).status_code == 404


@pytest.fixture
def hooked_client(vendor):
    """Webhook configured at https://hooks.example/n8n."""
    with TestClient(app) as test_client:
        app.state.services = build_services(
            make_settings(WEBHOOK_URL="https://hooks.example/n8n"), http_client=mock_client(vendor),
        )
        yield test_client


class TestWebhookRoutes:

    def test_config_is_exposed(self, client):
        assert client.get("/api/webhooks/config").json()["enabled"] is False

    def test_test_event_with_override(self, hooked_client, vendor):
        vendor.add("POST", "https://hooks.example/n8n")

        resp = hooked_client.post("/api/webhooks/test", json={
            "config": {"customHeaders": {"X-Token": "t"}},
        })

        assert resp.json() == {"delivered": True}
        assert str(vendor.requests[-1].url) == "https://hooks.example/n8n"
        assert vendor.requests[-1].headers["x-token"] == "t"

    def test_override_may_repeat_the_configured_url(self, hooked_client, vendor):
        vendor.add("POST", "https://hooks.example/n8n")

        resp = hooked_client.post("/api/webhooks/test", json={"config": {"webhookUrl": "https://hooks.example/n8n"}})

        assert resp.json() == {"delivered": True}

    def test_override_cannot_change_the_target(self, hooked_client, vendor):
        resp = hooked_client.post("/api/webhooks/test", json={
            "config": {"webhookUrl": "https://attacker.example/collect"},
        })

        assert resp.status_code == 400
        assert vendor.requests == []

    def test_missing_url(self, client, vendor):
        assert client.post("/api/webhooks/test", json={}).status_code == 400
        resp = client.post("/api/webhooks/test", json={"config": {"webhookUrl": "https://hooks.example/n8n"}})
        assert resp.status_code == 400
        assert vendor.requests == []


class TestExportRoutes:

    def test_edit_plan(self, client):
        resp = client.post("/api/exports/edit-plan", json={
            "videoUrl": "https://x/v.mp4", "captionStyle": "bold", "musicGenre": "chill",
        })

        assert resp.status_code == 200
        body = resp.json()
        assert body["videoUrl"] == body["originalUrl"] == "https://x/v.mp4"
        assert body["edits"]["captions"]["font"] == "Impact"
        assert body["edits"]["music"].endswith("SoundHelix-Song-2.mp3")
        assert body["message"] == "Captions and music added to video"

    def test_drive_not_configured(self, client, vendor):
        resp = client.post("/api/exports/drive", json={"videoUrl": "https://x/v.mp4"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is False
        assert body["videoUrl"] == "https://x/v.mp4"
        assert any("GOOGLE_REFRESH_TOKEN" in step for step in body["setupInstructions"])
        assert vendor.requests == []
