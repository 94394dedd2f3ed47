"""MailboxClient / MailboxPoller 테스트 - 가짜 Gmail 서비스 사용"""

import asyncio
import base64
from email import message_from_bytes

import pytest

from gmail_authenticator.errors import NotFoundError
from gmail_authenticator.mailbox.gmail_client import MailboxClient, decode_raw
from gmail_authenticator.mailbox.poller import MailboxPoller


class FakeRequest:
    def __init__(self, response):
        self._response = response

    def execute(self):
        return self._response


class FakeMessages:
    """users().messages() 호출을 기록"""

    def __init__(self, list_response=None, get_response=None):
        self.list_response = list_response or {"resultSizeEstimate": 0}
        self.get_response = get_response or {}
        self.calls = []

    def list(self, **kwargs):
        self.calls.append(("list", kwargs))
        return FakeRequest(self.list_response)

    def get(self, **kwargs):
        self.calls.append(("get", kwargs))
        return FakeRequest(dict(self.get_response))

    def send(self, **kwargs):
        self.calls.append(("send", kwargs))
        return FakeRequest({"id": "sent-1", "threadId": "t-1", "labelIds": ["SENT"]})

    def delete(self, **kwargs):
        self.calls.append(("delete", kwargs))
        return FakeRequest("")


class FakeService:
    def __init__(self, messages: FakeMessages):
        self._messages = messages

    def users(self):
        return self

    def messages(self):
        return self._messages


@pytest.fixture
def messages():
    return FakeMessages(
        list_response={
            "messages": [{"id": "m1", "threadId": "t1"}],
            "resultSizeEstimate": 1,
        },
        get_response={
            "id": "m1",
            "raw": base64.urlsafe_b64encode(
                b"Subject: Security alert\r\n\r\nHello"
            ).decode().rstrip("="),
        },
    )


@pytest.fixture
def client(messages):
    return MailboxClient(service=FakeService(messages))


class TestMailboxClient:
    """MailboxClient 테스트"""

    @pytest.mark.asyncio
    async def test_filter_emails(self, client, messages):
        """검색 조건이 API 파라미터로 전달되고 메시지 목록 반환"""
        result = await client.filter_emails(
            query="subject: Security alert", label_ids=["INBOX"], max_results=5
        )

        assert result == [{"id": "m1", "threadId": "t1"}]
        assert messages.calls == [
            (
                "list",
                {
                    "userId": "me",
                    "includeSpamTrash": False,
                    "q": "subject: Security alert",
                    "labelIds": ["INBOX"],
                    "maxResults": 5,
                },
            )
        ]

    @pytest.mark.asyncio
    async def test_filter_emails_empty(self):
        """결과가 없으면 빈 리스트"""
        client = MailboxClient(service=FakeService(FakeMessages()))
        assert await client.filter_emails(query="nothing") == []

    @pytest.mark.asyncio
    async def test_get_email_raw_decoded(self, client, messages):
        """raw 형식 본문은 텍스트로 디코딩"""
        message = await client.get_email("m1")

        assert "Security alert" in message["raw"]
        assert messages.calls == [("get", {"userId": "me", "id": "m1", "format": "raw"})]

    @pytest.mark.asyncio
    async def test_get_email_other_format(self, client, messages):
        """raw가 아닌 형식은 그대로 반환"""
        await client.get_email("m1", format="metadata", user_id="other@example.com")
        assert messages.calls[0] == (
            "get",
            {"userId": "other@example.com", "id": "m1", "format": "metadata"},
        )

    @pytest.mark.asyncio
    async def test_send_email(self, client, messages):
        """MIME 메시지를 base64url로 인코딩하여 발송"""
        sent = await client.send_email(
            to="to@example.com",
            sender="from@example.com",
            subject="Attempting to send email",
            message="Hello,\n this is an automatic email",
        )

        assert sent["id"] == "sent-1"
        name, kwargs = messages.calls[0]
        assert name == "send"
        assert kwargs["userId"] == "me"

        mime = message_from_bytes(base64.urlsafe_b64decode(kwargs["body"]["raw"]))
        assert mime["to"] == "to@example.com"
        assert mime["from"] == "from@example.com"
        assert mime["subject"] == "Attempting to send email"
        assert mime.get_content_type() == "text/plain"
        assert "automatic email" in mime.get_payload(decode=True).decode("utf-8")

    @pytest.mark.asyncio
    async def test_delete_email(self, client, messages):
        await client.delete_email("m1")
        assert messages.calls == [("delete", {"userId": "me", "id": "m1"})]

    def test_decode_raw_without_padding(self):
        encoded = base64.urlsafe_b64encode("안녕".encode("utf-8")).decode().rstrip("=")
        assert decode_raw(encoded) == "안녕"


class DelayedClient:
    """생성 후 delay_seconds가 지나야 메일 1건을 반환하는 가짜 클라이언트"""

    def __init__(self, delay_seconds: float) -> None:
        self.delay_seconds = delay_seconds
        self.started = asyncio.get_running_loop().time()
        self.calls = 0
        self.searches: list[dict] = []

    async def filter_emails(self, **search):
        self.calls += 1
        self.searches.append(search)
        elapsed = asyncio.get_running_loop().time() - self.started
        if elapsed >= self.delay_seconds:
            return [{"id": "m1", "threadId": "t1"}]
        return []


class TestMailboxPoller:
    """MailboxPoller 테스트"""

    @pytest.mark.asyncio
    async def test_found_before_timeout(self):
        """timeout이 지연 시간보다 길면 메일 반환"""
        client = DelayedClient(delay_seconds=0.3)
        poller = MailboxPoller(client, interval_seconds=0.05)

        messages = await poller.wait_for("subject: test", timeout_seconds=2)

        assert messages == [{"id": "m1", "threadId": "t1"}]
        assert client.calls > 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        """timeout이 지연 시간보다 짧으면 NotFoundError (경과/제한 포함)"""
        client = DelayedClient(delay_seconds=5)
        poller = MailboxPoller(client, interval_seconds=0.05)

        with pytest.raises(NotFoundError) as exc_info:
            await poller.wait_for("subject: test", timeout_seconds=0.2)

        assert exc_info.value.limit == 0.2
        assert exc_info.value.elapsed >= 0.2

    @pytest.mark.asyncio
    async def test_immediate_result(self):
        """이미 메일이 있으면 한 번만 조회"""
        client = DelayedClient(delay_seconds=0)
        poller = MailboxPoller(client)

        await poller.wait_for("subject: test")
        assert client.calls == 1

    @pytest.mark.asyncio
    async def test_search_options_forwarded(self):
        """검색 옵션이 매 조회마다 filter_emails에 그대로 전달"""
        client = DelayedClient(delay_seconds=0.1)
        poller = MailboxPoller(client, interval_seconds=0.05)

        await poller.wait_for(
            "from:noreply@example.com",
            timeout_seconds=2,
            label_ids=["INBOX"],
            max_results=3,
            include_spam_trash=True,
            user_id="user@example.com",
        )

        expected = {
            "query": "from:noreply@example.com",
            "label_ids": ["INBOX"],
            "max_results": 3,
            "include_spam_trash": True,
            "user_id": "user@example.com",
        }
        assert client.calls > 1
        assert all(search == expected for search in client.searches)
