"""인증기 예외 계층

모든 예외는 AuthenticatorError를 상속하므로 호출자는 한 번에 잡을 수 있습니다.
"""

from __future__ import annotations

from pathlib import Path


class AuthenticatorError(Exception):
    """gmail_authenticator의 최상위 예외"""


class ConfigurationError(AuthenticatorError):
    """클라이언트 정보 누락, 빈 스코프, 잘못된 리다이렉트 주소 등 설정 오류"""


class UiAutomationError(AuthenticatorError):
    """로그인 화면 자동화 실패 (요소 미출현, 페이지 이동 실패)"""

    def __init__(self, message: str, step: str | None = None) -> None:
        super().__init__(message)
        self.step = step


class CallbackError(AuthenticatorError):
    """OAuth 제공자가 code 대신 error로 리다이렉트했거나 콜백 서버를 열 수 없음"""

    def __init__(
        self,
        message: str,
        error: str | None = None,
        description: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.description = description


class TokenExchangeError(AuthenticatorError):
    """인증 코드를 토큰으로 교환하지 못함"""


class NotFoundError(AuthenticatorError, LookupError):
    """토큰 파일이 없거나 읽을 수 없음, 또는 메일 대기 타임아웃"""

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        elapsed: float | None = None,
        limit: float | None = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.elapsed = elapsed
        self.limit = limit


class AcquisitionTimeoutError(AuthenticatorError, TimeoutError):
    """토큰 발급 전체 대기 시간 초과"""

    def __init__(self, message: str, elapsed: float, limit: float) -> None:
        super().__init__(message)
        self.elapsed = elapsed
        self.limit = limit
