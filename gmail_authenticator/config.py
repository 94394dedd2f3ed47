"""설정 관리 모듈 - YAML + .env 기반 설정 로드 및 검증"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from gmail_authenticator.errors import ConfigurationError
from gmail_authenticator.models import (
    DEFAULT_SCOPE,
    DEFAULT_TOKEN_DIRECTORY,
    AcquisitionConfig,
    ClientIdentity,
    LoginCredentials,
    RedirectEndpoint,
    TokenLocation,
)

DEFAULT_TIMEOUT_SECONDS = 300.0
SUPPORTED_PROTOCOLS = ("http", "https")


@dataclass
class GoogleConfig:
    """OAuth 클라이언트 설정"""

    client_id: str = ""
    client_secret: str = ""
    scope: list[str] = field(default_factory=lambda: list(DEFAULT_SCOPE))


@dataclass
class LoginConfig:
    """로그인 계정 설정"""

    username: str = ""
    password: str = field(default="", repr=False)


@dataclass
class RedirectConfig:
    """콜백 주소 설정"""

    protocol: str = "http"
    domain: str = "localhost"
    port: int = 3000
    path: str = "/oauth2callback"


@dataclass
class TokenConfig:
    """토큰 파일 설정 (name이 비어 있으면 <client_id>-token)"""

    directory: str = DEFAULT_TOKEN_DIRECTORY
    name: str = ""


@dataclass
class BrowserConfig:
    """Playwright 브라우저 설정"""

    headless: bool = True
    executable_path: str = ""
    selector_timeout_seconds: float = 30
    navigation_timeout_seconds: float = 60


@dataclass
class AcquisitionSettings:
    """토큰 발급 설정 (timeout_seconds가 None이면 무제한 대기)"""

    timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS


@dataclass
class MailboxConfig:
    """메일함 설정"""

    user_id: str = "me"
    poll_interval_seconds: float = 1.0
    wait_timeout_seconds: float = 5.0


@dataclass
class Settings:
    """전체 애플리케이션 설정"""

    google: GoogleConfig = field(default_factory=GoogleConfig)
    login: LoginConfig = field(default_factory=LoginConfig)
    redirect: RedirectConfig = field(default_factory=RedirectConfig)
    token: TokenConfig = field(default_factory=TokenConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    acquisition: AcquisitionSettings = field(default_factory=AcquisitionSettings)
    mailbox: MailboxConfig = field(default_factory=MailboxConfig)
    log_level: str = "INFO"

    @classmethod
    def load(
        cls,
        config_path: str = "config/settings.yaml",
        env_path: str = "config/.env",
    ) -> Settings:
        """설정 파일과 환경 변수를 로드하여 Settings 인스턴스를 생성합니다."""
        env_file = Path(env_path)
        if env_file.exists():
            load_dotenv(env_file)

        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(
                f"설정 파일을 찾을 수 없습니다: {config_path}\n"
                f"config/settings.example.yaml을 복사하여 생성해 주세요."
            )

        with open(config_file, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        return cls._from_dict(raw)

    @classmethod
    def _from_dict(cls, raw: dict) -> Settings:
        """딕셔너리에서 Settings 인스턴스를 생성합니다."""
        google_raw = raw.get("google") or {}
        google = GoogleConfig(
            client_id=cls._resolve_env(google_raw.get("client_id", "")),
            client_secret=cls._resolve_env(google_raw.get("client_secret", "")),
            scope=list(google_raw.get("scope") or DEFAULT_SCOPE),
        )

        login_raw = raw.get("login") or {}
        login = LoginConfig(
            username=cls._resolve_env(login_raw.get("username", "")),
            password=cls._resolve_env(login_raw.get("password", "")),
        )

        redirect_raw = raw.get("redirect") or {}
        redirect = RedirectConfig(
            protocol=redirect_raw.get("protocol", "http"),
            domain=redirect_raw.get("domain", "localhost"),
            port=int(redirect_raw.get("port", 3000)),
            path=redirect_raw.get("path", "/oauth2callback"),
        )

        token_raw = raw.get("token") or {}
        token = TokenConfig(
            directory=token_raw.get("directory", DEFAULT_TOKEN_DIRECTORY),
            name=token_raw.get("name", ""),
        )

        browser_raw = raw.get("browser") or {}
        browser = BrowserConfig(
            headless=bool(browser_raw.get("headless", True)),
            executable_path=browser_raw.get("executable_path", ""),
            selector_timeout_seconds=browser_raw.get("selector_timeout_seconds", 30),
            navigation_timeout_seconds=browser_raw.get(
                "navigation_timeout_seconds", 60
            ),
        )

        acquisition_raw = raw.get("acquisition") or {}
        acquisition = AcquisitionSettings(
            timeout_seconds=acquisition_raw.get(
                "timeout_seconds", DEFAULT_TIMEOUT_SECONDS
            ),
        )

        mailbox_raw = raw.get("mailbox") or {}
        mailbox = MailboxConfig(
            user_id=mailbox_raw.get("user_id", "me"),
            poll_interval_seconds=mailbox_raw.get("poll_interval_seconds", 1.0),
            wait_timeout_seconds=mailbox_raw.get("wait_timeout_seconds", 5.0),
        )

        return cls(
            google=google,
            login=login,
            redirect=redirect,
            token=token,
            browser=browser,
            acquisition=acquisition,
            mailbox=mailbox,
            log_level=raw.get("log_level") or os.getenv("LOG_LEVEL", "INFO"),
        )

    @staticmethod
    def _resolve_env(value: str) -> str:
        """${ENV_VAR} 형식의 값을 환경 변수로 치환합니다."""
        if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            env_key = value[2:-1]
            return os.getenv(env_key, "")
        return value

    def validate(self) -> list[str]:
        """설정 값의 유효성을 검사하고 경고 메시지 리스트를 반환합니다."""
        warnings = []

        if not self.google.client_id:
            warnings.append("OAuth 클라이언트 ID가 설정되지 않았습니다.")

        if not self.google.client_secret:
            warnings.append("OAuth 클라이언트 시크릿이 설정되지 않았습니다.")

        if not self.login.username or not self.login.password:
            warnings.append("로그인 계정(username/password)이 설정되지 않았습니다.")

        if self.redirect.protocol not in SUPPORTED_PROTOCOLS:
            warnings.append(
                f"지원하지 않는 리다이렉트 프로토콜입니다: {self.redirect.protocol}"
            )

        if self.browser.executable_path:
            executable = Path(self.browser.executable_path).expanduser()
            if not executable.exists():
                warnings.append(f"브라우저 실행 파일을 찾을 수 없습니다: {executable}")

        if self.acquisition.timeout_seconds is None:
            warnings.append("토큰 발급 타임아웃이 없어 콜백이 오지 않으면 무한 대기합니다.")

        return warnings

    def redirect_endpoint(self) -> RedirectEndpoint:
        return build_redirect_endpoint(
            protocol=self.redirect.protocol,
            domain=self.redirect.domain,
            port=self.redirect.port,
            path=self.redirect.path,
        )


def build_redirect_endpoint(
    protocol: str | None = None,
    domain: str | None = None,
    port: int | None = None,
    path: str | None = None,
) -> RedirectEndpoint:
    """기본값을 채운 RedirectEndpoint를 만들고 검증합니다."""
    defaults = RedirectEndpoint()
    endpoint = RedirectEndpoint(
        protocol=(protocol or defaults.protocol).lower(),
        domain=domain or defaults.domain,
        port=defaults.port if port is None else port,
        path=path or defaults.path,
    )

    if endpoint.protocol not in SUPPORTED_PROTOCOLS:
        raise ConfigurationError(
            f"리다이렉트 프로토콜은 http 또는 https여야 합니다: {endpoint.protocol}"
        )
    if not isinstance(endpoint.port, int) or not 0 < endpoint.port < 65536:
        raise ConfigurationError(f"잘못된 리다이렉트 포트입니다: {endpoint.port}")
    if not endpoint.path.startswith("/"):
        raise ConfigurationError(
            f"리다이렉트 경로는 '/'로 시작해야 합니다: {endpoint.path}"
        )
    if "/" in endpoint.domain or ":" in endpoint.domain:
        raise ConfigurationError(f"잘못된 리다이렉트 도메인입니다: {endpoint.domain}")
    return endpoint


def normalize_scope(scope: list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
    """빈 항목과 중복을 제거한 스코프 튜플을 반환합니다 (None이면 기본 스코프)."""
    if scope is None:
        return DEFAULT_SCOPE
    if isinstance(scope, str):
        scope = scope.split()
    normalized = tuple(dict.fromkeys(s.strip() for s in scope if s and s.strip()))
    if not normalized:
        raise ConfigurationError("스코프가 비어 있습니다. 최소 1개 이상 지정해 주세요.")
    return normalized


def build_identity(client_id: str | None, client_secret: str | None) -> ClientIdentity:
    if not client_id:
        raise ConfigurationError("OAuth 클라이언트 ID가 필요합니다.")
    if not client_secret:
        raise ConfigurationError("OAuth 클라이언트 시크릿이 필요합니다.")
    return ClientIdentity(client_id=client_id, client_secret=client_secret)


def build_acquisition_config(
    identity: ClientIdentity,
    username: str | None,
    password: str | None,
    scope: list[str] | tuple[str, ...] | None = None,
    redirect: RedirectEndpoint | dict | None = None,
    token_name: str | None = None,
    token_directory: str | None = None,
    timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
) -> AcquisitionConfig:
    """호출자 옵션과 기본값을 합쳐 검증된 AcquisitionConfig를 만듭니다.

    상태 머신이 시작되기 전에 필요한 값이 모두 채워졌는지 이 한 곳에서 확인합니다.

    Raises:
        ConfigurationError: 필수 값 누락 또는 잘못된 값
    """
    if not identity.client_id or not identity.client_secret:
        raise ConfigurationError("OAuth 클라이언트 ID와 시크릿이 필요합니다.")
    if not username:
        raise ConfigurationError("최초 인증에는 username이 필요합니다.")
    if not password:
        raise ConfigurationError("최초 인증에는 password가 필요합니다.")

    if isinstance(redirect, RedirectEndpoint):
        endpoint = build_redirect_endpoint(
            redirect.protocol, redirect.domain, redirect.port, redirect.path
        )
    else:
        endpoint = build_redirect_endpoint(**(redirect or {}))

    if timeout_seconds is not None and timeout_seconds <= 0:
        raise ConfigurationError(
            f"타임아웃은 0보다 커야 합니다: {timeout_seconds}"
        )

    return AcquisitionConfig(
        identity=identity,
        scope=normalize_scope(scope),
        redirect=endpoint,
        login=LoginCredentials(username=username, password=password),
        location=TokenLocation.for_client(
            identity.client_id, file_name=token_name, directory=token_directory
        ),
        timeout_seconds=timeout_seconds,
    )
