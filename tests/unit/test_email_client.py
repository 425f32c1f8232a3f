import asyncio
import json

import httpx
import pytest

from newsletter.clients.email import AUTHORIZATION_HEADER, PostmarkEmailClient, build_email_client
from newsletter.domain.errors import DomainValidationError, EmailTransportError
from newsletter.domain.subscriber_email import SubscriberEmail
from newsletter.settings import EmailClientSettings, email_client_settings_from_env


def _client(handler) -> PostmarkEmailClient:
    return PostmarkEmailClient(
        base_url="https://mail.newsletter.io",
        sender=SubscriberEmail.parse("editor@newsletter.io"),
        authorization_token="server-token",
        timeout_ms=500,
        transport=httpx.MockTransport(handler),
    )


async def _send(client: PostmarkEmailClient) -> None:
    try:
        await client.send_email(
            recipient="ursula_le_guin@gmail.com",
            subject="Weekly digest",
            html_content="<p>HTML body</p>",
            text_content="Plain body",
        )
    finally:
        await client.aclose()


@pytest.mark.unit
def test_send_email_posts_expected_payload() -> None:
    captured: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"ErrorCode": 0})

    asyncio.run(_send(_client(_handler)))

    assert len(captured) == 1
    request = captured[0]
    assert request.method == "POST"
    assert request.url.path == "/email"
    assert request.headers[AUTHORIZATION_HEADER] == "server-token"
    assert json.loads(request.content) == {
        "From": "editor@newsletter.io",
        "To": "ursula_le_guin@gmail.com",
        "Subject": "Weekly digest",
        "HtmlBody": "<p>HTML body</p>",
        "TextBody": "Plain body",
    }


@pytest.mark.unit
def test_server_error_is_reported_as_transport_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, request=request)

    with pytest.raises(EmailTransportError) as exc_info:
        asyncio.run(_send(_client(_handler)))

    assert "500" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)


@pytest.mark.unit
def test_network_failure_is_reported_as_transport_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(EmailTransportError) as exc_info:
        asyncio.run(_send(_client(_handler)))

    assert isinstance(exc_info.value.__cause__, httpx.ConnectTimeout)


@pytest.mark.unit
def test_email_settings_read_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EMAIL_BASE_URL", "https://mail.newsletter.io")
    monkeypatch.setenv("EMAIL_SENDER", "editor@newsletter.io")
    monkeypatch.setenv("EMAIL_AUTHORIZATION_TOKEN", "secret")
    monkeypatch.setenv("EMAIL_TIMEOUT_MS", "2500")

    settings = email_client_settings_from_env()

    assert settings == EmailClientSettings(
        base_url="https://mail.newsletter.io",
        sender="editor@newsletter.io",
        authorization_token="secret",
        timeout_ms=2500,
    )


@pytest.mark.unit
def test_build_email_client_validates_sender() -> None:
    with pytest.raises(DomainValidationError):
        build_email_client(EmailClientSettings(base_url="https://mail.newsletter.io", sender="nobody"))

    with pytest.raises(ValueError):
        build_email_client(EmailClientSettings(base_url=None, sender="editor@newsletter.io"))
