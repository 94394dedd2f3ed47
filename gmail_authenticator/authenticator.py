"""구글 인증기 - 새 토큰 발급, 토큰 파일/토큰 객체로 인증"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from google.oauth2.credentials import Credentials

from gmail_authenticator.auth.credential_store import CredentialStore
from gmail_authenticator.auth.orchestrator import TokenAcquisitionOrchestrator
from gmail_authenticator.auth.token_exchanger import TOKEN_URI
from gmail_authenticator.config import (
    DEFAULT_TIMEOUT_SECONDS,
    build_acquisition_config,
    build_identity,
)
from gmail_authenticator.errors import ConfigurationError
from gmail_authenticator.logger import get_logger, mask
from gmail_authenticator.mailbox.gmail_client import MailboxClient
from gmail_authenticator.models import (
    CredentialToken,
    RedirectEndpoint,
    TokenLocation,
)

logger = get_logger("authenticator")


class GoogleAuthenticator:
    """Gmail 계정 인증기

    사용 예:
        authenticator = GoogleAuthenticator(client_id, client_secret)
        await authenticator.authorize_with_new_token(username, password, scope)
        emails = await authenticator.mailbox().filter_emails(query="is:unread")
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        orchestrator: TokenAcquisitionOrchestrator | None = None,
        store: CredentialStore | None = None,
    ) -> None:
        self.identity = build_identity(client_id, client_secret)
        self.store = store or CredentialStore()
        self.orchestrator = orchestrator or TokenAcquisitionOrchestrator(
            store=self.store
        )
        self.credentials: Credentials | None = None

    async def authorize_with_new_token(
        self,
        username: str,
        password: str,
        scope: list[str] | None = None,
        redirect: RedirectEndpoint | dict | None = None,
        token_name: str | None = None,
        token_directory: str | None = None,
        timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
    ) -> Credentials:
        """브라우저 로그인을 거쳐 새 토큰을 발급받아 저장하고 인증합니다.

        Args:
            username: Gmail 계정
            password: Gmail 비밀번호
            scope: 권한 스코프 (None이면 gmail.readonly)
            redirect: 콜백 주소 (기본 http://localhost:3000/oauth2callback)
            token_name: 토큰 파일 이름 (기본 <client_id>-token)
            token_directory: 토큰 디렉토리 (기본 ./tokens/)
            timeout_seconds: 전체 발급 대기 시간 (None이면 무제한)

        Returns:
            발급된 토큰이 설정된 Credentials
        """
        config = build_acquisition_config(
            self.identity,
            username=username,
            password=password,
            scope=scope,
            redirect=redirect,
            token_name=token_name,
            token_directory=token_directory,
            timeout_seconds=timeout_seconds,
        )

        client_id = self.identity.client_id
        logger.debug("==== 설정 값 ====")
        logger.debug("Username: %s", mask(config.login.username))
        logger.debug("Password: %s", mask(config.login.password))
        logger.debug(
            "Token Path: %s", str(config.location.path).replace(client_id, mask(client_id))
        )
        logger.debug("Redirect URI: %s", config.redirect.uri)
        logger.debug("Scope: %s", " ".join(config.scope))
        logger.debug("Timeout: %s", config.timeout_seconds)
        logger.debug("=================")

        token = await self.orchestrator.acquire(config)
        return self.authorize_with_token(token)

    async def authorize_with_token_file(
        self, name: str, directory: str = "./tokens/"
    ) -> Credentials:
        """저장된 토큰 파일로 인증합니다.

        Raises:
            NotFoundError: 토큰 파일이 없거나 읽을 수 없는 경우
        """
        location = TokenLocation(file_name=name, directory=directory)
        logger.info("토큰 파일로 인증: %s", location.path)
        token = await self.store.load(location.path)
        return self.authorize_with_token(token)

    def authorize_with_token(self, token: CredentialToken | dict[str, Any]) -> Credentials:
        """토큰 객체(또는 토큰 딕셔너리)로 인증합니다."""
        if isinstance(token, dict):
            try:
                token = CredentialToken.from_dict(token)
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(f"잘못된 토큰 형식입니다: {e}") from e

        self.credentials = self._to_credentials(token)
        logger.debug("토큰 설정 완료")
        return self.credentials

    def mailbox(self, user_id: str = "me") -> MailboxClient:
        """현재 인증 정보로 메일함 클라이언트를 생성합니다."""
        if self.credentials is None:
            raise ConfigurationError("먼저 authorize_with_* 로 인증해 주세요.")
        return MailboxClient(credentials=self.credentials, user_id=user_id)

    def _to_credentials(self, token: CredentialToken) -> Credentials:
        expiry = None
        if token.expiry_date is not None:
            # google-auth는 naive UTC datetime을 사용
            expiry = datetime.fromtimestamp(
                token.expiry_date / 1000, tz=timezone.utc
            ).replace(tzinfo=None)

        return Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.identity.client_id,
            client_secret=self.identity.client_secret,
            scopes=token.scope.split() or None,
            expiry=expiry,
        )
