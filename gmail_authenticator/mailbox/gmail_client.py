"""Gmail 메일함 클라이언트 - 메일 목록/조회/발송/삭제"""

from __future__ import annotations

import asyncio
import base64
from email.mime.text import MIMEText
from typing import Any

from googleapiclient.discovery import build

from gmail_authenticator.logger import get_logger

logger = get_logger("mailbox.gmail")


class MailboxClient:
    """Gmail REST API(v1) 래퍼

    googleapiclient 호출은 블로킹이므로 워커 스레드에서 실행합니다.
    HttpError는 그대로 호출자에게 전달됩니다.
    """

    def __init__(self, credentials=None, service=None, user_id: str = "me") -> None:
        self.credentials = credentials
        self.user_id = user_id
        self._service = service

    def _get_service(self):
        """Gmail API 서비스를 초기화합니다."""
        if self._service is None:
            self._service = build(
                "gmail", "v1", credentials=self.credentials, cache_discovery=False
            )
        return self._service

    def _messages(self):
        return self._get_service().users().messages()

    async def filter_emails(
        self,
        query: str | None = None,
        label_ids: list[str] | None = None,
        max_results: int | None = None,
        include_spam_trash: bool = False,
        page_token: str | None = None,
        user_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """조건에 맞는 메일 목록({id, threadId})을 반환합니다."""
        params: dict[str, Any] = {
            "userId": user_id or self.user_id,
            "includeSpamTrash": include_spam_trash,
        }
        if query:
            params["q"] = query
        if label_ids:
            params["labelIds"] = label_ids
        if max_results:
            params["maxResults"] = max_results
        if page_token:
            params["pageToken"] = page_token

        request = self._messages().list(**params)
        response = await asyncio.to_thread(request.execute)
        messages = response.get("messages") or []
        logger.debug("메일 검색 (q=%s): %d건", query, len(messages))
        return messages

    async def get_email(
        self,
        message_id: str,
        format: str = "raw",
        user_id: str | None = None,
    ) -> dict[str, Any]:
        """메일 1건을 조회합니다. raw 형식이면 본문을 텍스트로 디코딩합니다."""
        request = self._messages().get(
            userId=user_id or self.user_id, id=message_id, format=format
        )
        message = await asyncio.to_thread(request.execute)

        if format == "raw" and message.get("raw"):
            message["raw"] = decode_raw(message["raw"])
        return message

    async def send_email(
        self,
        to: str,
        sender: str,
        subject: str,
        message: str,
        user_id: str | None = None,
    ) -> dict[str, Any]:
        """텍스트 메일을 발송하고 API 응답({id, threadId, labelIds})을 반환합니다."""
        mime = MIMEText(message, "plain", "utf-8")
        mime["to"] = to
        mime["from"] = sender
        mime["subject"] = subject

        request = self._messages().send(
            userId=user_id or self.user_id, body={"raw": encode_raw(mime.as_bytes())}
        )
        sent = await asyncio.to_thread(request.execute)
        logger.info("메일 발송 완료: %s → %s (%s)", sender, to, subject)
        return sent

    async def delete_email(self, message_id: str, user_id: str | None = None) -> None:
        """메일을 영구 삭제합니다."""
        request = self._messages().delete(userId=user_id or self.user_id, id=message_id)
        await asyncio.to_thread(request.execute)
        logger.info("메일 삭제 완료: %s", message_id)


def encode_raw(payload: bytes) -> str:
    return base64.urlsafe_b64encode(payload).decode("ascii")


def decode_raw(raw: str) -> str:
    """base64url 문자열을 텍스트로 디코딩합니다 (패딩 누락 허용)."""
    padded = raw + "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
