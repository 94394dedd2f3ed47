"""Gmail 토큰 생성기 - 설정 파일 기반으로 새 토큰을 발급받아 저장

Usage:
    python -m gmail_authenticator.main                     # config/settings.yaml 사용
    python -m gmail_authenticator.main --headful           # 브라우저 화면 표시
    python -m gmail_authenticator.main --timeout 120       # 전체 대기 시간 지정
    python -m gmail_authenticator.main --wait-for "subject: Security alert"
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from gmail_authenticator.auth.browser_login import PlaywrightLoginDriver
from gmail_authenticator.auth.credential_store import CredentialStore
from gmail_authenticator.auth.orchestrator import TokenAcquisitionOrchestrator
from gmail_authenticator.authenticator import GoogleAuthenticator
from gmail_authenticator.config import Settings
from gmail_authenticator.errors import AuthenticatorError
from gmail_authenticator.logger import get_logger, setup_logger
from gmail_authenticator.mailbox.poller import MailboxPoller

logger = get_logger("main")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """CLI 인자를 파싱합니다."""
    parser = argparse.ArgumentParser(
        description="Gmail OAuth2 토큰 자동 발급기",
    )
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="설정 파일 경로 (기본: config/settings.yaml)",
    )
    parser.add_argument(
        "--env",
        default="config/.env",
        help="환경 변수 파일 경로 (기본: config/.env)",
    )
    parser.add_argument(
        "--headful",
        action="store_true",
        help="브라우저 화면을 띄워서 실행",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="토큰 발급 전체 대기 시간(초), 설정 파일 값보다 우선",
    )
    parser.add_argument(
        "--wait-for",
        metavar="QUERY",
        default=None,
        help="토큰 발급 후 검색어에 맞는 메일이 올 때까지 대기",
    )
    return parser.parse_args(argv)


def build_authenticator(settings: Settings, headful: bool = False) -> GoogleAuthenticator:
    """설정으로 브라우저 드라이버와 오케스트레이터를 조립합니다."""
    driver = PlaywrightLoginDriver(
        headless=settings.browser.headless and not headful,
        executable_path=settings.browser.executable_path or None,
        selector_timeout_seconds=settings.browser.selector_timeout_seconds,
        navigation_timeout_seconds=settings.browser.navigation_timeout_seconds,
    )
    store = CredentialStore()
    orchestrator = TokenAcquisitionOrchestrator(browser_driver=driver, store=store)
    return GoogleAuthenticator(
        client_id=settings.google.client_id,
        client_secret=settings.google.client_secret,
        orchestrator=orchestrator,
        store=store,
    )


async def generate_token(
    settings: Settings, headful: bool = False
) -> GoogleAuthenticator:
    """설정 값으로 새 토큰을 발급받아 저장합니다."""
    authenticator = build_authenticator(settings, headful=headful)
    credentials = await authenticator.authorize_with_new_token(
        username=settings.login.username,
        password=settings.login.password,
        scope=settings.google.scope,
        redirect=settings.redirect_endpoint(),
        token_name=settings.token.name or None,
        token_directory=settings.token.directory,
        timeout_seconds=settings.acquisition.timeout_seconds,
    )
    logger.info("토큰 유효: %s, 만료 시간: %s", credentials.valid, credentials.expiry)
    return authenticator


async def wait_for_email(
    authenticator: GoogleAuthenticator, settings: Settings, query: str
) -> list[dict]:
    """발급된 토큰으로 검색어에 맞는 메일을 기다립니다."""
    poller = MailboxPoller(
        authenticator.mailbox(user_id=settings.mailbox.user_id),
        interval_seconds=settings.mailbox.poll_interval_seconds,
    )
    messages = await poller.wait_for(
        query=query, timeout_seconds=settings.mailbox.wait_timeout_seconds
    )
    for message in messages:
        logger.info("메일 id=%s threadId=%s", message.get("id"), message.get("threadId"))
    return messages


async def main(argv: list[str] | None = None) -> int:
    """메인 엔트리포인트"""
    args = parse_args(argv)

    settings = Settings.load(config_path=args.config, env_path=args.env)
    if args.timeout is not None:
        settings.acquisition.timeout_seconds = args.timeout

    setup_logger(level=settings.log_level)

    for w in settings.validate():
        logger.warning("설정 경고: %s", w)

    try:
        authenticator = await generate_token(settings, headful=args.headful)
        if args.wait_for:
            await wait_for_email(authenticator, settings, args.wait_for)
    except AuthenticatorError as e:
        logger.error("토큰 발급 실패: %s", e)
        return 1
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
