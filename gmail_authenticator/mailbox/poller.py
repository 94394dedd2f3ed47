"""메일 대기 - 조건에 맞는 메일이 도착할 때까지 주기적으로 조회"""

from __future__ import annotations

import asyncio
from typing import Any

from gmail_authenticator.errors import NotFoundError
from gmail_authenticator.logger import get_logger
from gmail_authenticator.mailbox.gmail_client import MailboxClient

logger = get_logger("mailbox.poller")


class MailboxPoller:
    """MailboxClient.filter_emails를 결과가 나올 때까지 반복 호출합니다. 읽기만 합니다."""

    def __init__(self, client: MailboxClient, interval_seconds: float = 1.0) -> None:
        self.client = client
        self.interval_seconds = interval_seconds

    async def wait_for(
        self,
        query: str | None = None,
        timeout_seconds: float = 5,
        label_ids: list[str] | None = None,
        max_results: int | None = None,
        include_spam_trash: bool = False,
        user_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """메일이 1건 이상 검색될 때까지 기다립니다.

        검색 옵션은 그대로 filter_emails에 전달됩니다.

        Raises:
            NotFoundError: timeout_seconds 안에 검색 결과가 없는 경우
        """
        loop = asyncio.get_running_loop()
        started = loop.time()

        search = {
            "query": query,
            "label_ids": label_ids,
            "max_results": max_results,
            "include_spam_trash": include_spam_trash,
            "user_id": user_id,
        }

        messages = await self.client.filter_emails(**search)
        while not messages:
            elapsed = loop.time() - started
            if elapsed >= timeout_seconds:
                raise NotFoundError(
                    f"메일을 찾지 못했습니다 ({elapsed:.1f}/{timeout_seconds}초, q={query})",
                    elapsed=elapsed,
                    limit=timeout_seconds,
                )
            await asyncio.sleep(min(self.interval_seconds, timeout_seconds - elapsed))
            messages = await self.client.filter_emails(**search)

        logger.info("메일 %d건 발견 (q=%s)", len(messages), query)
        return messages
