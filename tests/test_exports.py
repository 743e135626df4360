"""Tests for the Google Drive exporter and caption/music edit plans."""
import json
from urllib.parse import parse_qs

import httpx
import pytest

from conftest import make_settings, mock_client

from castforge.errors import TransportError, VendorApiError
from castforge.services.export_service import CAPTION_STYLES, DriveExporter, build_edit_plan

UPLOAD_SESSION = "https://www.googleapis.com/upload/drive/v3/files?uploadType=resumable&upload_id=abc"


def _drive_settings(**overrides):
    return make_settings(
        GOOGLE_CLIENT_ID="client", GOOGLE_CLIENT_SECRET="secret", GOOGLE_REFRESH_TOKEN="refresh", **overrides,
    )


class FakeGoogle:
    """Token endpoint, video CDN and Drive resumable upload."""

    def __init__(self, token="tok-1", location=UPLOAD_SESSION):
        self.token = token
        self.location = location
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "oauth2.googleapis.com":
            return httpx.Response(200, json={"access_token": self.token} if self.token else {})
        if request.url.host == "cdn.example":
            return httpx.Response(200, content=b"mp4-bytes")
        if request.method == "POST":
            headers = {"Location": self.location} if self.location else {}
            return httpx.Response(200, headers=headers)
        return httpx.Response(200, json={"id": "file-1", "name": json.loads(self.requests[-2].content)["name"]})


class TestDriveExporter:

    @pytest.mark.asyncio
    async def test_not_configured_returns_instructions(self):
        google = FakeGoogle()
        exporter = DriveExporter(make_settings(), http_client=mock_client(google))

        result = await exporter.export("https://cdn.example/v.mp4")

        assert not result.success
        assert result.error == "Google Drive not configured"
        assert result.video_url == "https://cdn.example/v.mp4"
        assert google.requests == []

    @pytest.mark.asyncio
    async def test_upload_flow(self):
        google = FakeGoogle()
        exporter = DriveExporter(_drive_settings(), http_client=mock_client(google))

        result = await exporter.export("https://cdn.example/v.mp4", folder_id="folder-9", file_name="ad.mp4")

        assert result.success
        assert result.file_id == "file-1"
        assert result.file_name == "ad.mp4"
        assert result.drive_url == "https://drive.google.com/file/d/file-1/view"

        token, download, init, upload = google.requests
        assert parse_qs(token.content.decode()) == {
            "client_id": ["client"], "client_secret": ["secret"],
            "refresh_token": ["refresh"], "grant_type": ["refresh_token"],
        }
        assert download.url.host == "cdn.example"
        assert init.url.params["uploadType"] == "resumable"
        assert init.headers["authorization"] == "Bearer tok-1"
        assert json.loads(init.content) == {"name": "ad.mp4", "mimeType": "video/mp4", "parents": ["folder-9"]}
        assert str(upload.url) == UPLOAD_SESSION
        assert upload.method == "PUT"
        assert upload.content == b"mp4-bytes"

    @pytest.mark.asyncio
    async def test_default_name_and_root_folder(self):
        google = FakeGoogle()
        exporter = DriveExporter(_drive_settings(), http_client=mock_client(google))

        await exporter.export("https://cdn.example/v.mp4")

        metadata = json.loads(google.requests[2].content)
        assert metadata["name"].startswith("video-") and metadata["name"].endswith(".mp4")
        assert "parents" not in metadata

    @pytest.mark.asyncio
    @pytest.mark.parametrize("google, message", [
        (FakeGoogle(token=None), "access token"),
        (FakeGoogle(location=None), "initiate upload"),
    ])
    async def test_incomplete_google_answers(self, google, message):
        exporter = DriveExporter(_drive_settings(), http_client=mock_client(google))

        with pytest.raises(VendorApiError, match=message):
            await exporter.export("https://cdn.example/v.mp4")

    @pytest.mark.asyncio
    async def test_download_failure(self):
        def handler(request):
            if request.url.host == "cdn.example":
                return httpx.Response(404, text="gone")
            return httpx.Response(200, json={"access_token": "tok"})

        exporter = DriveExporter(_drive_settings(), http_client=mock_client(handler))

        with pytest.raises(VendorApiError, match="HTTP 404"):
            await exporter.export("https://cdn.example/v.mp4")

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        exporter = DriveExporter(_drive_settings(), http_client=mock_client(handler))

        with pytest.raises(TransportError):
            await exporter.export("https://cdn.example/v.mp4")


class TestEditPlan:

    def test_captions_only(self):
        plan = build_edit_plan("https://x/v.mp4", caption_style="minimal")

        assert plan["edits"]["captions"] == CAPTION_STYLES["minimal"]
        assert plan["edits"]["caption_text"] == "Auto-transcribed"
        assert plan["edits"]["music"] is None
        assert plan["message"] == "Captions added to video"

    def test_unknown_style_falls_back_to_modern(self):
        plan = build_edit_plan("https://x/v.mp4", "Hallo", caption_style="retro", music_genre="cinematic")

        assert plan["edits"]["captions"] == CAPTION_STYLES["modern"]
        assert plan["edits"]["caption_text"] == "Hallo"
        assert plan["edits"]["music"].endswith("SoundHelix-Song-3.mp3")
