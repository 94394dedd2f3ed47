"""토큰 발급 오케스트레이터 - 콜백 리스너, 브라우저 로그인, 토큰 교환을 하나의 흐름으로 묶음"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence

from gmail_authenticator.auth.browser_login import BrowserLoginDriver, PlaywrightLoginDriver
from gmail_authenticator.auth.callback_listener import CallbackListener
from gmail_authenticator.auth.credential_store import CredentialStore
from gmail_authenticator.auth.token_exchanger import GoogleTokenExchanger, TokenExchanger
from gmail_authenticator.errors import (
    AcquisitionTimeoutError,
    AuthenticatorError,
    CallbackError,
    TokenExchangeError,
)
from gmail_authenticator.logger import get_logger, mask
from gmail_authenticator.models import (
    AcquisitionConfig,
    AcquisitionState,
    CallbackResult,
    ClientIdentity,
    CredentialToken,
)

logger = get_logger("auth.orchestrator")

ExchangerFactory = Callable[[ClientIdentity, Sequence[str], str], TokenExchanger]

# 발급 성공 후 브라우저가 스스로 종료하기를 기다리는 시간
BROWSER_GRACE_SECONDS = 5.0


class TokenAcquisitionOrchestrator:
    """토큰 발급 상태 머신

    NOT_STARTED → AWAITING_CALLBACK → COMPLETED | FAILED

    콜백 핸들러가 교환·저장을 끝낸 뒤 Future를 한 번만 완료하고,
    acquire()는 그 Future를 (선택적 타임아웃과 함께) 기다립니다.
    리스너와 브라우저는 시도마다 새로 만들고 어떤 경로로 끝나든 정리합니다.
    """

    def __init__(
        self,
        browser_driver: BrowserLoginDriver | None = None,
        store: CredentialStore | None = None,
        exchanger_factory: ExchangerFactory = GoogleTokenExchanger,
        listener_factory: Callable[[], CallbackListener] = CallbackListener,
        browser_grace_seconds: float = BROWSER_GRACE_SECONDS,
    ) -> None:
        self.browser_driver = browser_driver or PlaywrightLoginDriver()
        self.store = store or CredentialStore()
        self.exchanger_factory = exchanger_factory
        self.listener_factory = listener_factory
        self.browser_grace_seconds = browser_grace_seconds
        self.state = AcquisitionState.NOT_STARTED

    async def acquire(self, config: AcquisitionConfig) -> CredentialToken:
        """동의 URL 생성부터 토큰 저장까지 한 번의 발급을 수행합니다.

        Raises:
            CallbackError: 제공자가 error로 리다이렉트한 경우
            TokenExchangeError: 코드 → 토큰 교환 실패
            UiAutomationError: 콜백 전에 브라우저 로그인이 실패한 경우
            AcquisitionTimeoutError: config.timeout_seconds 초과
        """
        self.state = AcquisitionState.NOT_STARTED

        exchanger = self.exchanger_factory(
            config.identity, config.scope, config.redirect.uri
        )
        consent_url = exchanger.authorization_url()
        logger.debug(
            "동의 URL 생성: %s",
            consent_url.replace(config.identity.client_id, mask(config.identity.client_id)),
        )

        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[CredentialToken] = loop.create_future()

        async def on_callback(result: CallbackResult) -> bool:
            if outcome.done():
                return False
            try:
                token = await self._complete(exchanger, config, result)
            except Exception as e:
                if not outcome.done():
                    outcome.set_exception(e)
                return False
            if outcome.done():
                return False
            outcome.set_result(token)
            return True

        listener = self.listener_factory()
        browser_task: asyncio.Task | None = None
        try:
            await listener.start(config.redirect, on_callback)
            self._transition(AcquisitionState.AWAITING_CALLBACK)

            browser_task = asyncio.create_task(
                self.browser_driver.run(
                    consent_url, config.login.username, config.login.password
                ),
                name="browser-login",
            )
            token = await self._wait_for_outcome(
                outcome, browser_task, config.timeout_seconds
            )
        except BaseException as e:
            self._transition(AcquisitionState.FAILED)
            logger.error("토큰 발급 실패: %s", e)
            raise
        finally:
            await listener.stop()
            if not outcome.done():
                outcome.cancel()
            grace = self.browser_grace_seconds if self._succeeded(outcome) else 0
            await self._release_browser(browser_task, grace)

        self._transition(AcquisitionState.COMPLETED)
        logger.info("토큰 발급 완료: %s", config.location.path)
        return token

    async def _complete(
        self,
        exchanger: TokenExchanger,
        config: AcquisitionConfig,
        result: CallbackResult,
    ) -> CredentialToken:
        """교환 → 저장 순서로 처리합니다. 저장이 끝나야 성공으로 간주됩니다."""
        if not result.ok:
            raise CallbackError(
                f"OAuth 제공자가 오류를 반환했습니다: {result.error}"
                + (f" ({result.error_description})" if result.error_description else ""),
                error=result.error,
                description=result.error_description,
            )

        assert result.code is not None
        try:
            token = await exchanger.exchange(result.code)
            await self.store.save(config.location.path, token)
        except (AuthenticatorError, OSError):
            raise
        except Exception as e:
            raise TokenExchangeError(f"토큰 교환/저장 중 오류: {e!r}") from e
        return token

    async def _wait_for_outcome(
        self,
        outcome: asyncio.Future[CredentialToken],
        browser_task: asyncio.Task,
        timeout_seconds: float | None,
    ) -> CredentialToken:
        """콜백 결과를 기다립니다.

        브라우저가 콜백보다 먼저 실패하면 그 오류를 올리고,
        정상 종료하면 남은 시간 동안 콜백을 계속 기다립니다.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        pending: set[asyncio.Future] = {outcome, browser_task}

        while not outcome.done():
            remaining = None
            if timeout_seconds is not None:
                remaining = timeout_seconds - (loop.time() - started)
                if remaining <= 0:
                    break

            done, pending = await asyncio.wait(
                pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            if not done:
                break

            if browser_task in done and not outcome.done():
                error = browser_task.exception()
                if error is not None:
                    raise error
                logger.info("브라우저 로그인 단계 완료, 콜백 대기 중...")

        if not outcome.done():
            elapsed = loop.time() - started
            raise AcquisitionTimeoutError(
                f"토큰 발급이 {timeout_seconds}초 내에 완료되지 않았습니다 "
                f"(경과 {elapsed:.1f}초)",
                elapsed=elapsed,
                limit=timeout_seconds or 0.0,
            )
        return outcome.result()

    @staticmethod
    def _succeeded(outcome: asyncio.Future) -> bool:
        return outcome.done() and not outcome.cancelled() and outcome.exception() is None

    @staticmethod
    async def _release_browser(
        browser_task: asyncio.Task | None, grace_seconds: float = 0
    ) -> None:
        """브라우저 작업이 남아 있으면 (grace_seconds 후) 취소하고 종료를 기다립니다."""
        if browser_task is None:
            return
        if grace_seconds > 0 and not browser_task.done():
            await asyncio.wait({browser_task}, timeout=grace_seconds)
        if not browser_task.done():
            logger.debug("브라우저 작업 취소")
            browser_task.cancel()
        await asyncio.wait({browser_task})
        if not browser_task.cancelled() and browser_task.exception() is not None:
            logger.debug("브라우저 작업 종료 오류: %s", browser_task.exception())

    def _transition(self, state: AcquisitionState) -> None:
        logger.debug("상태 전이: %s → %s", self.state.value, state.value)
        self.state = state
