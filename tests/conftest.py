"""공용 테스트 픽스처 - 빈 포트, 가짜 교환기/브라우저"""

from __future__ import annotations

import asyncio
import socket
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
import pytest

from gmail_authenticator.errors import TokenExchangeError
from gmail_authenticator.models import ClientIdentity, CredentialToken, RedirectEndpoint

GOOD_CODE = "GOODCODE"


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def free_port():
    return find_free_port()


@pytest.fixture
def endpoint(free_port):
    return RedirectEndpoint(
        protocol="http", domain="localhost", port=free_port, path="/oauth2callback"
    )


@pytest.fixture
def identity():
    return ClientIdentity(client_id="abc", client_secret="xyz")


class StubExchanger:
    """동의 URL을 직접 만들고 GOODCODE만 토큰으로 바꿔 주는 가짜 교환기"""

    instances: list[StubExchanger] = []

    def __init__(self, identity, scope, redirect_uri) -> None:
        self.identity = identity
        self.scope = list(scope)
        self.redirect_uri = redirect_uri
        self.codes: list[str] = []
        StubExchanger.instances.append(self)

    def authorization_url(self) -> str:
        return "https://accounts.example.com/o/oauth2/authorize?" + urlencode(
            {
                "client_id": self.identity.client_id,
                "redirect_uri": self.redirect_uri,
                "scope": " ".join(self.scope),
                "access_type": "offline",
            }
        )

    async def exchange(self, code: str) -> CredentialToken:
        self.codes.append(code)
        if code != GOOD_CODE:
            raise TokenExchangeError(f"invalid_grant: {code}")
        return CredentialToken(
            access_token="A",
            refresh_token="R",
            scope="mail.readonly",
            token_type="Bearer",
            expiry_date=1234,
        )


@pytest.fixture
def stub_exchanger():
    StubExchanger.instances = []
    return StubExchanger


class RedirectingBrowser:
    """동의 URL의 redirect_uri로 곧바로 GET 요청을 보내는 가짜 브라우저"""

    def __init__(self, params: dict[str, str]) -> None:
        self.params = params
        self.consent_urls: list[str] = []
        self.logins: list[tuple[str, str]] = []
        self.response: httpx.Response | None = None
        self.closed = False

    async def run(self, consent_url: str, username: str, password: str) -> None:
        self.consent_urls.append(consent_url)
        self.logins.append((username, password))
        redirect_uri = parse_qs(urlsplit(consent_url).query)["redirect_uri"][0]
        try:
            async with httpx.AsyncClient(trust_env=False) as client:
                self.response = await client.get(redirect_uri, params=self.params)
        finally:
            self.closed = True


class HangingBrowser:
    """콜백을 보내지 않고 취소될 때까지 기다리는 가짜 브라우저"""

    def __init__(self) -> None:
        self.started = False
        self.cancelled = False

    async def run(self, consent_url: str, username: str, password: str) -> None:
        self.started = True
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise


async def port_is_released(endpoint: RedirectEndpoint) -> bool:
    """포트에 연결이 거부되면 True"""
    try:
        async with httpx.AsyncClient(trust_env=False) as client:
            await client.get(endpoint.uri, params={"code": "LATE"})
    except httpx.ConnectError:
        return True
    return False
