"""
API integration tests for the host application.

Drives the FastAPI app end to end: bridge -> test router -> SQLite and
filesystem bindings -> bridge.
"""
import logging

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from yomitan_local.adapters import SQLiteRelationalAdapter
from yomitan_local.bridge.fetch import FetchResponse
from yomitan_local.core.config import HostSettings
from yomitan_local.core.errors import ConfigurationError
from yomitan_local.main import create_app
from yomitan_local.ports.router import as_router

from conftest import SAMPLE_MP3
from routers import audio_router, fake_synthesize


@pytest.fixture
def app(settings):
    return create_app(settings, audio_router)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.mark.api
class TestAudioLookup:

    def test_list_returns_matching_entry(self, client):
        response = client.get("/audio/list", params={"term": "猫", "reading": "ねこ"})

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("application/json")
        data = response.json()
        assert len(data) == 1
        assert data[0]["name"] == "NHK16 猫"
        assert data[0]["url"] == "http://testserver/audio/get/nhk16/neko.mp3"

    def test_list_without_match_is_empty(self, client):
        response = client.get("/audio/list", params={"term": "猫", "reading": "いぬ"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []

    def test_audio_file_is_byte_identical(self, client):
        response = client.get("/audio/get/nhk16/neko.mp3")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.content == SAMPLE_MP3

    def test_missing_audio_is_404(self, client):
        response = client.get("/audio/get/nhk16/missing.mp3")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"message": "File not found"}

    def test_tts_cache_miss_then_hit(self, client, app, data_dir):
        first = client.get("/tts/abc123")
        client.portal.call(app.state.runner.join)
        second = client.get("/tts/abc123")

        assert first.headers["x-cache"] == "MISS"
        assert second.headers["x-cache"] == "HIT"
        assert first.content == second.content == fake_synthesize("abc123")
        assert (data_dir / "tts_files" / "abc123.mp3").read_bytes() == fake_synthesize("abc123")


@pytest.mark.api
class TestBridging:

    def test_request_shape_reaches_router(self, client):
        response = client.post(
            "/echo?tag=a&tag=b&term=%E7%8C%AB",
            content="payload",
            headers={"X-Api-Key": "secret", "Content-Type": "text/plain"},
        )

        data = response.json()
        assert data["method"] == "POST"
        assert data["url"] == "http://testserver/echo?tag=a&tag=b&term=%E7%8C%AB"
        assert data["headers"]["x-api-key"] == "secret"
        assert data["headers"]["host"] == "testserver"
        assert data["query"] == {"tag": ["a", "b"], "term": "猫"}
        assert data["params"] == {}
        assert data["body"] == "payload"

    def test_text_response_and_custom_headers(self, client):
        response = client.get("/text")

        assert response.text == "こんにちは"
        assert response.headers["x-custom-header"] == "kept"

    def test_multiple_set_cookie_headers(self, client):
        response = client.get("/cookies")

        assert response.headers.get_list("set-cookie") == ["a=1", "b=2"]

    def test_flags_are_threaded_through(self, db_path, data_dir):
        settings = HostSettings(
            dataDir=str(data_dir),
            databasePath=str(db_path),
            AUTHENTICATION_ENABLED=True,
            API_KEYS="k1,k2",
        )
        with TestClient(create_app(settings, audio_router)) as client:
            data = client.get("/flags").json()

        assert data == {"authentication_enabled": True, "aws_polly_enabled": False, "api_keys": "k1,k2"}

    def test_cors_headers(self, client):
        response = client.get("/text", headers={"Origin": "http://example.com"})

        assert response.headers["access-control-allow-origin"] == "*"

    def test_callable_router(self, settings):
        async def handler(request, env, ctx):
            return FetchResponse.text_response(request.method)

        with TestClient(create_app(settings, as_router(handler))) as client:
            assert client.delete("/anything").text == "DELETE"


@pytest.mark.api
class TestErrors:

    def test_router_exception_becomes_json_500(self, client):
        response = client.get("/boom")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"message": "router exploded"}

        # The host keeps serving
        assert client.get("/audio/list", params={"term": "猫", "reading": "ねこ"}).status_code == 200

    def test_query_error_becomes_json_500(self, client):
        response = client.get("/bad-sql")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["message"].startswith("Database query failed: ")

    def test_invalid_router_json_is_bridge_error(self, client):
        response = client.get("/bad-json")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert "invalid JSON" in response.json()["message"]

    def test_router_returning_nothing(self, client):
        response = client.get("/none")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert "instead of a response" in response.json()["message"]

    def test_failing_deferred_task_does_not_affect_response(self, app, caplog):
        with caplog.at_level(logging.ERROR, logger="yomitan_local"):
            with TestClient(app) as client:
                response = client.get("/defer-fail")
                client.portal.call(app.state.runner.join)
                follow_up = client.get("/text")

        assert response.status_code == status.HTTP_202_ACCEPTED
        assert response.text == "accepted"
        assert follow_up.status_code == status.HTTP_200_OK
        failures = [r for r in caplog.records if "Background task" in r.getMessage()]
        assert len(failures) == 1
        assert "deferred boom" in failures[0].getMessage()


@pytest.mark.api
class TestLifecycle:

    def test_shutdown_closes_database(self, settings, db_path):
        relational = SQLiteRelationalAdapter(db_path)
        app = create_app(settings, audio_router, relational=relational)

        with TestClient(app) as client:
            client.get("/text")
            assert relational._closed is False

        assert relational._closed is True

    def test_missing_database_is_fatal(self, data_dir, tmp_path):
        missing = tmp_path / "missing.db"
        settings = HostSettings(dataDir=str(data_dir), databasePath=str(missing))

        with pytest.raises(ConfigurationError) as exc_info:
            create_app(settings, audio_router)

        assert "Database not found" in exc_info.value.message
        assert exc_info.value.remediation
        assert not missing.exists()
