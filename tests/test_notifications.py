"""Tests for webhook notifications and search engine submission."""

import httpx
import pytest

from be.config import settings
from be.indexing import BING_SUBMIT_URL, post_url, submit_to_search_engines
from be.notifications import (
    CONTACT_COLOR,
    create_contact_form_notification,
    create_new_user_notification,
    send_discord_notification,
)


def test_new_user_embed():
    embed = create_new_user_notification("new@example.com")["embeds"][0]
    assert embed["title"] == "🎉 New User Registration"
    assert embed["fields"][0] == {"name": "Email", "value": "new@example.com", "inline": True}
    assert embed["timestamp"].endswith("Z")


def test_contact_embed_truncates_message():
    embed = create_contact_form_notification("Ana", "ana@example.com", "Hello", "x" * 1500)["embeds"][0]
    message = embed["fields"][3]["value"]
    assert embed["color"] == CONTACT_COLOR
    assert len(message) == 1003
    assert message.endswith("...")


class TestSendDiscord:
    async def test_success(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            ok = await send_discord_notification({"content": "hi"}, "https://hooks.example.com/x", client=client)

        assert ok is True
        assert seen[0].method == "POST"

    async def test_error_status(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))) as client:
            assert await send_discord_notification({}, "https://hooks.example.com/x", client=client) is False

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            assert await send_discord_notification({}, "https://hooks.example.com/x", client=client) is False

    async def test_without_url(self):
        assert await send_discord_notification({}) is False


class TestIndexing:
    def test_post_url(self, monkeypatch):
        monkeypatch.setattr(settings, "site_url", "https://prep.example.com/")
        assert post_url("bond-basics") == "https://prep.example.com/blog/bond-basics"

    async def test_skipped_without_keys(self, monkeypatch):
        monkeypatch.setattr(settings.indexing, "bing_api_key", None)
        monkeypatch.setattr(settings.indexing, "indexnow_api_key", None)

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await submit_to_search_engines("https://prep.example.com/blog/x", client=client)

        assert result["bing"] == {"success": False, "message": "Bing API key not configured"}
        assert result["indexNow"]["success"] is False

    async def test_submits_to_both(self, monkeypatch):
        monkeypatch.setattr(settings.indexing, "bing_api_key", "bing-key")
        monkeypatch.setattr(settings.indexing, "indexnow_api_key", "now-key")
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if str(request.url).startswith(BING_SUBMIT_URL):
                assert request.url.params["apikey"] == "bing-key"
                return httpx.Response(200, json={"d": None})
            assert request.url.params["key"] == "now-key"
            return httpx.Response(202)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await submit_to_search_engines("https://prep.example.com/blog/x", client=client)

        assert result["bing"]["success"] is True
        assert result["indexNow"] == {"success": True, "message": "Submitted to IndexNow (Bing, Yandex, etc.)"}
        assert sorted(hosts) == ["api.indexnow.org", "ssl.bing.com"]

    @pytest.mark.parametrize("status", [400, 422])
    async def test_indexnow_rejection(self, monkeypatch, status):
        monkeypatch.setattr(settings.indexing, "bing_api_key", None)
        monkeypatch.setattr(settings.indexing, "indexnow_api_key", "now-key")

        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(status))) as client:
            result = await submit_to_search_engines("https://prep.example.com/blog/x", client=client)

        assert result["indexNow"]["message"] == f"IndexNow submission failed: {status}"
