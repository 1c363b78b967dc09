"""
Service Tests for the Vocabulary Audio API

Tests FastAPI HTTP endpoints with httpx.AsyncClient:
    - POST /api/audio/generate, GET /api/audio/{id}, GET /api/audio/download/{id}
    - GET /api/audio/generated/{filename}, GET /api/images/generated/{filename}
    - POST /api/cards/generate, POST /api/export
    - GET /health, GET /

Run with:
    pytest vocab_audio/tests/test_service.py -v
"""

import io
import zipfile

import httpx
import pytest

from vocab_audio.app import app
from vocab_audio.models import AssetKind
from vocab_audio.providers.mock import MockGenerationProvider
from vocab_audio.services import build_services


@pytest.fixture
def make_client(monkeypatch, audio_config, catalog, fake_sleep):
    """Install services around the given provider and return an httpx client."""

    def factory(provider=None):
        services = build_services(
            audio_config,
            catalog=catalog,
            provider=provider or MockGenerationProvider(),
            sleep=fake_sleep,
        )
        monkeypatch.setattr(app.state, "services", services)
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
        return client, services

    return factory


@pytest.mark.integration
class TestGenerateEndpoints:
    """Test job submission, status and proxy download."""

    @pytest.mark.asyncio
    async def test_generate(self, make_client):
        provider = MockGenerationProvider()
        client, _ = make_client(provider)
        async with client:
            response = await client.post("/api/audio/generate", json={"text": "สวัสดี"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert provider.jobs[data["id"]]["language"] == "th-TH"

    @pytest.mark.asyncio
    async def test_generate_empty_text(self, make_client):
        client, _ = make_client()
        async with client:
            empty = await client.post("/api/audio/generate", json={"text": "  "})
            missing = await client.post("/api/audio/generate", json={})

        assert empty.status_code == 400
        assert missing.status_code == 400

    @pytest.mark.asyncio
    async def test_generate_provider_failure(self, make_client):
        client, _ = make_client(MockGenerationProvider(fail_submits=10))
        async with client:
            response = await client.post("/api/audio/generate", json={"text": "สวัสดี"})

        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_status_pending_then_done(self, make_client):
        client, _ = make_client(MockGenerationProvider(polls_until_done=2))
        async with client:
            job_id = (await client.post("/api/audio/generate", json={"text": "สวัสดี"})).json()["id"]
            pending = await client.get(f"/api/audio/{job_id}")
            done = await client.get(f"/api/audio/{job_id}")

        assert pending.json() == {"status": "Pending"}
        assert done.json()["status"] == "Done"
        assert done.json()["location"] == f"mock://{job_id}.mp3"

    @pytest.mark.asyncio
    async def test_status_provider_failure(self, make_client):
        client, _ = make_client()
        async with client:
            response = await client.get("/api/audio/unknown-job")

        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_download(self, make_client):
        client, _ = make_client()
        async with client:
            job_id = (await client.post("/api/audio/generate", json={"text": "สวัสดี"})).json()["id"]
            response = await client.get(f"/api/audio/download/{job_id}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.headers["content-disposition"] == f'attachment; filename="{job_id}.mp3"'
        assert len(response.content) == 5 * 1024

    @pytest.mark.asyncio
    async def test_download_not_ready(self, make_client):
        client, _ = make_client(MockGenerationProvider(polls_until_done=5))
        async with client:
            job_id = (await client.post("/api/audio/generate", json={"text": "สวัสดี"})).json()["id"]
            response = await client.get(f"/api/audio/download/{job_id}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_download_under_size(self, make_client):
        client, _ = make_client(MockGenerationProvider(payload_size=500))
        async with client:
            job_id = (await client.post("/api/audio/generate", json={"text": "สวัสดี"})).json()["id"]
            response = await client.get(f"/api/audio/download/{job_id}")

        assert response.status_code == 404


@pytest.mark.integration
class TestGeneratedAssets:
    """Test serving stored audio, markers and images."""

    @pytest.mark.asyncio
    async def test_serves_stored_audio(self, make_client, sample_mp3):
        client, services = make_client()
        record = services.store.write_asset(1, AssetKind.WORD, sample_mp3)
        filename = record.storage_path.split("/")[-1]
        async with client:
            response = await client.get(f"/api/audio/generated/{filename}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.content == sample_mp3

    @pytest.mark.asyncio
    async def test_under_size_audio_not_served(self, make_client):
        client, services = make_client()
        services.store.write("audio/word_1_1.mp3", b"\x00" * 100)
        async with client:
            small = await client.get("/api/audio/generated/word_1_1.mp3")
            missing = await client.get("/api/audio/generated/word_1_2.mp3")

        assert small.status_code == 404
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_serves_fallback_marker(self, make_client):
        client, services = make_client()
        record = services.store.write_fallback_marker(1, AssetKind.WORD, "สวัสดี", "th-TH")
        filename = record.storage_path.split("/")[-1]
        async with client:
            response = await client.get(f"/api/audio/generated/{filename}")

        assert response.status_code == 200
        assert response.json()["type"] == "tts_fallback"
        assert response.json()["text"] == "สวัสดี"

    @pytest.mark.asyncio
    async def test_rejects_traversal(self, make_client):
        client, _ = make_client()
        async with client:
            response = await client.get("/api/audio/generated/..%5Csecret.mp3")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_serves_card_image(self, make_client):
        client, services = make_client()
        record = services.store.write_asset(1, AssetKind.IMAGE, b"<svg></svg>")
        filename = record.storage_path.split("/")[-1]
        async with client:
            response = await client.get(f"/api/images/generated/{filename}")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("image/svg+xml")


@pytest.mark.integration
class TestCardsAndExport:
    """Test batch endpoints."""

    @pytest.mark.asyncio
    async def test_generate_cards(self, make_client):
        client, _ = make_client()
        async with client:
            response = await client.post("/api/cards/generate", json={"contentIds": [1, 999]})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["results"][0]["success"] is True
        assert data["results"][0]["wordAudio"].startswith("audio/word_1_")
        assert data["results"][1] == {"contentId": 999, "success": False, "error": "Card not found"}

    @pytest.mark.asyncio
    async def test_generate_cards_requires_list(self, make_client):
        client, _ = make_client()
        async with client:
            missing = await client.post("/api/cards/generate", json={})
            not_list = await client.post("/api/cards/generate", json={"contentIds": "1"})

        assert missing.status_code == 400
        assert not_list.status_code == 400

    @pytest.mark.asyncio
    async def test_export(self, make_client):
        client, _ = make_client()
        async with client:
            response = await client.post("/api/export", json={"contentIds": [1, 2]})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert response.headers["x-export-failures"] == "0"
        assert "thai_cards_" in response.headers["content-disposition"]
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            names = archive.namelist()
        assert len([name for name in names if name.startswith("images/")]) == 2
        assert len([name for name in names if name.startswith("audio/")]) == 2

    @pytest.mark.asyncio
    async def test_export_unknown_card(self, make_client):
        client, _ = make_client()
        async with client:
            response = await client.post("/api/export", json={"contentIds": [1, 999]})

        assert response.status_code == 404


@pytest.mark.integration
class TestServiceInfo:
    @pytest.mark.asyncio
    async def test_health(self, make_client):
        client, _ = make_client()
        async with client:
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["provider"] == "mock"
        assert "store_stats" in data
        assert "cache" in data["resolver_stats"]

    @pytest.mark.asyncio
    async def test_root(self, make_client):
        client, _ = make_client()
        async with client:
            response = await client.get("/")

        assert response.json()["endpoints"]["export"] == "POST /api/export"
