"""Tests for captcha verification."""

import asyncio
from urllib.parse import parse_qs

import httpx

from reviewguard.config import Settings
from reviewguard.moderation.captcha import CaptchaVerifier


def _verify(handler, token="tok", remote_ip=None, secret="s3cret"):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            verifier = CaptchaVerifier(secret=secret, endpoint="https://captcha.test/verify", client=client)
            return await verifier.verify(token, remote_ip)

    return asyncio.run(run())


def test_disabled_without_secret():
    verifier = CaptchaVerifier(secret="")
    assert not verifier.enabled
    assert asyncio.run(verifier.verify("anything")) is True


def test_success_posts_form():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"success": True, "hostname": "example.com"})

    assert _verify(handler, token="abc", remote_ip="203.0.113.9") is True
    assert seen["url"] == "https://captcha.test/verify"
    assert seen["form"] == {
        "secret": ["s3cret"],
        "response": ["abc"],
        "remoteip": ["203.0.113.9"],
    }


def test_rejected_token():
    def handler(request):
        return httpx.Response(200, json={"success": False, "error-codes": ["invalid-input-response"]})

    assert _verify(handler) is False


def test_server_error_fails_closed():
    assert _verify(lambda request: httpx.Response(500, text="oops")) is False


def test_bad_json_fails_closed():
    assert _verify(lambda request: httpx.Response(200, text="<html>")) is False


def test_non_object_payload_fails_closed():
    assert _verify(lambda request: httpx.Response(200, json=["success"])) is False


def test_network_error_fails_closed():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert _verify(handler) is False


def test_from_settings():
    settings = Settings(captcha_secret="k", captcha_verify_url="https://x.test", captcha_timeout=3.0)
    verifier = CaptchaVerifier.from_settings(settings)
    assert verifier.enabled
    assert verifier.endpoint == "https://x.test"
    assert verifier.timeout == 3.0
