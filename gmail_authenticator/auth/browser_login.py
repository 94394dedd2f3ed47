"""구글 로그인 자동화 - Playwright로 동의 화면의 로그인 단계를 수행"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Protocol, TypeVar
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from gmail_authenticator.errors import UiAutomationError
from gmail_authenticator.logger import get_logger

logger = get_logger("auth.browser")

T = TypeVar("T")

LOGIN_HOST = "accounts.google.com"

EMAIL_INPUT = "input[type=email]"
EMAIL_NEXT = "#identifierNext"
PASSWORD_INPUT = "input[type=password]"
PASSWORD_NEXT = "#passwordNext"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class BrowserLoginDriver(Protocol):
    """동의 URL을 열어 로그인까지 진행하는 드라이버 인터페이스"""

    async def run(self, consent_url: str, username: str, password: str) -> None: ...


class PlaywrightLoginDriver:
    """Playwright(Chromium)로 구글 로그인 화면을 자동화합니다.

    호출마다 전용 브라우저를 띄우고, 성공/실패/취소 어느 경우든 종료합니다.
    리다이렉트 자체는 관찰하지 않고 로그인 호스트를 벗어나면 끝냅니다.
    """

    def __init__(
        self,
        headless: bool = True,
        executable_path: str | None = None,
        selector_timeout_seconds: float = 30,
        navigation_timeout_seconds: float = 60,
        login_host: str = LOGIN_HOST,
        user_agent: str = USER_AGENT,
        extra_args: list[str] | None = None,
    ) -> None:
        self.headless = headless
        self.executable_path = executable_path or None
        self.selector_timeout_seconds = selector_timeout_seconds
        self.navigation_timeout_seconds = navigation_timeout_seconds
        self.login_host = login_host
        self.user_agent = user_agent
        self.extra_args = extra_args or []

    async def run(self, consent_url: str, username: str, password: str) -> None:
        """동의 URL로 이동해 계정/비밀번호를 입력하고 로그인 화면을 벗어날 때까지 대기합니다.

        Raises:
            UiAutomationError: 브라우저를 띄울 수 없거나, 요소가 제한 시간 내에
                나타나지 않거나, 이동에 실패한 경우
        """
        logger.info("브라우저 세션 시작 (headless=%s)", self.headless)

        try:
            async with async_playwright() as playwright:
                browser = await self._step(
                    "launch",
                    playwright.chromium.launch(
                        headless=self.headless,
                        executable_path=self.executable_path,
                        args=[
                            "--no-sandbox",
                            "--disable-blink-features=AutomationControlled",
                            *self.extra_args,
                        ],
                    ),
                )
                try:
                    context = await self._step(
                        "launch", browser.new_context(user_agent=self.user_agent)
                    )
                    page = await self._step("launch", context.new_page())
                    await self._login(page, consent_url, username, password)
                finally:
                    await browser.close()
                    logger.info("브라우저 세션 종료")
        except PlaywrightError as e:
            # playwright 드라이버 시작/종료 실패
            raise UiAutomationError(
                f"브라우저 세션 오류: {e.message}", step="launch"
            ) from e

    async def _login(
        self, page: Page, consent_url: str, username: str, password: str
    ) -> None:
        await self._step(
            "navigate",
            page.goto(
                consent_url,
                wait_until="domcontentloaded",
                timeout=self.navigation_timeout_seconds * 1000,
            ),
        )

        await self._fill(page, EMAIL_INPUT, username, "email")
        logger.debug("아이디 입력 완료")
        await self._step("email-next", page.click(EMAIL_NEXT))

        await self._fill(page, PASSWORD_INPUT, password, "password")
        logger.debug("비밀번호 입력 완료")
        await self._step("password-next", page.click(PASSWORD_NEXT))

        logger.debug("로그인 화면 이탈 대기 중...")
        await self._step(
            "leave-login",
            page.wait_for_url(
                self._left_login_host,
                wait_until="commit",
                timeout=self.navigation_timeout_seconds * 1000,
            ),
        )
        logger.info("로그인 화면 통과: %s", urlsplit(page.url).netloc)

    async def _fill(self, page: Page, selector: str, value: str, step: str) -> None:
        await self._step(
            step,
            page.wait_for_selector(
                selector,
                state="visible",
                timeout=self.selector_timeout_seconds * 1000,
            ),
        )
        await self._step(step, page.type(selector, value))

    def _left_login_host(self, url: str) -> bool:
        return urlsplit(url).hostname != self.login_host

    @staticmethod
    async def _step(name: str, action: Awaitable[T]) -> T:
        """Playwright 오류를 어느 단계에서 실패했는지 담은 UiAutomationError로 바꿉니다."""
        try:
            return await action
        except PlaywrightTimeoutError as e:
            raise UiAutomationError(
                f"로그인 단계 '{name}' 대기 시간 초과: {e.message}", step=name
            ) from e
        except PlaywrightError as e:
            raise UiAutomationError(
                f"로그인 단계 '{name}' 실패: {e.message}", step=name
            ) from e
