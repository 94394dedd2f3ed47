"""OAuth 토큰 교환기 - 동의 URL 생성 및 인증 코드 → 토큰 교환"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any, Protocol

from google_auth_oauthlib.flow import Flow

from gmail_authenticator.errors import TokenExchangeError
from gmail_authenticator.logger import get_logger
from gmail_authenticator.models import ClientIdentity, CredentialToken

logger = get_logger("auth.exchanger")

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


class TokenExchanger(Protocol):
    """오케스트레이터가 필요로 하는 토큰 교환기 인터페이스"""

    def authorization_url(self) -> str: ...

    async def exchange(self, code: str) -> CredentialToken: ...


class GoogleTokenExchanger:
    """google-auth-oauthlib의 Flow로 동의 URL을 만들고 코드를 토큰으로 교환합니다."""

    def __init__(
        self,
        identity: ClientIdentity,
        scope: Sequence[str],
        redirect_uri: str,
    ) -> None:
        self.scope = list(scope)
        self.redirect_uri = redirect_uri
        client_config = {
            "installed": {
                "client_id": identity.client_id,
                "client_secret": identity.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [redirect_uri],
            }
        }
        self._flow = Flow.from_client_config(
            client_config, scopes=self.scope, redirect_uri=redirect_uri
        )

    def authorization_url(self) -> str:
        """refresh token을 받기 위해 offline 접근으로 동의 URL을 생성합니다."""
        url, _state = self._flow.authorization_url(access_type="offline")
        return url

    async def exchange(self, code: str) -> CredentialToken:
        """인증 코드를 토큰으로 교환합니다.

        Raises:
            TokenExchangeError: 네트워크 오류, 만료되었거나 잘못된 코드
        """
        logger.debug("인증 코드로 토큰 요청")
        try:
            raw = await asyncio.to_thread(self._flow.fetch_token, code=code)
        except Exception as e:
            raise TokenExchangeError(f"토큰 교환 실패: {e}") from e

        return self._to_token(raw)

    def _to_token(self, raw: dict[str, Any]) -> CredentialToken:
        if not raw.get("access_token"):
            raise TokenExchangeError("토큰 응답에 access_token이 없습니다.")

        expires_at = raw.get("expires_at")
        return CredentialToken(
            access_token=raw["access_token"],
            refresh_token=raw.get("refresh_token"),
            scope=self._scope_string(raw.get("scope")),
            token_type=raw.get("token_type") or "Bearer",
            expiry_date=int(expires_at * 1000) if expires_at is not None else None,
        )

    def _scope_string(self, scope: str | Sequence[str] | None) -> str:
        if not scope:
            return " ".join(self.scope)
        if isinstance(scope, str):
            return scope
        return " ".join(scope)
