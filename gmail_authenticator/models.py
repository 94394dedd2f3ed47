"""데이터 모델 정의 - 인증 흐름 전반에서 사용되는 데이터 클래스"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_SCOPE = ("https://www.googleapis.com/auth/gmail.readonly",)
DEFAULT_TOKEN_DIRECTORY = "./tokens/"


class AcquisitionState(Enum):
    """토큰 발급 상태"""

    NOT_STARTED = "not_started"
    AWAITING_CALLBACK = "awaiting_callback"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ClientIdentity:
    """OAuth 클라이언트 정보 (디스크에 저장하지 않음)"""

    client_id: str
    client_secret: str = field(repr=False)


@dataclass(frozen=True)
class LoginCredentials:
    """구글 로그인 화면에 입력할 계정 정보"""

    username: str = field(repr=False)
    password: str = field(repr=False)


@dataclass(frozen=True)
class RedirectEndpoint:
    """로컬 콜백 주소 - redirect_uri와 리스너 바인딩 주소를 동시에 결정"""

    protocol: str = "http"
    domain: str = "localhost"
    port: int = 3000
    path: str = "/oauth2callback"

    @property
    def uri(self) -> str:
        return f"{self.protocol}://{self.domain}:{self.port}{self.path}"


@dataclass
class CredentialToken:
    """저장되는 토큰 (구글 토큰 파일 형식, expiry_date는 epoch 밀리초)"""

    access_token: str
    refresh_token: str | None = None
    scope: str = ""
    token_type: str = "Bearer"
    expiry_date: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "scope": self.scope,
            "token_type": self.token_type,
            "expiry_date": self.expiry_date,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CredentialToken:
        """딕셔너리에서 CredentialToken을 생성합니다.

        access_token이 없으면 KeyError가 발생합니다.
        """
        scope = raw.get("scope", "")
        if isinstance(scope, (list, tuple)):
            scope = " ".join(scope)
        expiry = raw.get("expiry_date")
        return cls(
            access_token=raw["access_token"],
            refresh_token=raw.get("refresh_token"),
            scope=scope or "",
            token_type=raw.get("token_type") or "Bearer",
            expiry_date=int(expiry) if expiry is not None else None,
        )


@dataclass(frozen=True)
class TokenLocation:
    """토큰 파일 위치 - 저장과 재인증이 같은 경로를 사용"""

    file_name: str
    directory: str = DEFAULT_TOKEN_DIRECTORY

    @property
    def path(self) -> Path:
        name = self.file_name
        if not name.endswith(".json"):
            name = f"{name}.json"
        return Path(self.directory) / name

    @classmethod
    def for_client(
        cls,
        client_id: str,
        file_name: str | None = None,
        directory: str | None = None,
    ) -> TokenLocation:
        """클라이언트 ID 기반 기본 위치에 호출자 지정 값을 덮어씁니다."""
        return cls(
            file_name=file_name or f"{client_id}-token",
            directory=directory or DEFAULT_TOKEN_DIRECTORY,
        )


@dataclass(frozen=True)
class CallbackResult:
    """리다이렉트 쿼리에서 추출한 값"""

    code: str | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def ok(self) -> bool:
        return bool(self.code) and self.error is None


@dataclass(frozen=True)
class AcquisitionConfig:
    """토큰 발급 1회에 필요한 완전히 채워진 설정"""

    identity: ClientIdentity
    scope: tuple[str, ...]
    redirect: RedirectEndpoint
    login: LoginCredentials
    location: TokenLocation
    timeout_seconds: float | None = 300.0
