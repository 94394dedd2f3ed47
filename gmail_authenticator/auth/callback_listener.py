"""OAuth 콜백 리스너 - 리다이렉트 요청 1건을 받아 인증 코드를 전달"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from html import escape
from urllib.parse import parse_qs, urlsplit

from gmail_authenticator.errors import CallbackError
from gmail_authenticator.logger import get_logger
from gmail_authenticator.models import CallbackResult, RedirectEndpoint

logger = get_logger("auth.callback")

# 연결만 맺고 요청을 보내지 않는 클라이언트(브라우저 preconnect 등) 대기 한도
HEADER_READ_TIMEOUT_SECONDS = 5.0

OnCode = Callable[[CallbackResult], Awaitable[bool]]

_REASONS = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    410: "Gone",
}


class CallbackListener:
    """리다이렉트 경로로 들어오는 GET 요청 1건만 처리하는 단기 HTTP 서버

    첫 번째 유효한 요청이 들어오면 더 이상 연결을 받지 않고,
    code(또는 error)를 on_code 콜백에 넘긴 뒤 결과 페이지로 응답합니다.
    """

    def __init__(self) -> None:
        self._server: asyncio.AbstractServer | None = None
        self._endpoint: RedirectEndpoint | None = None
        self._on_code: OnCode | None = None
        self._delivered = False
        self._handlers: set[asyncio.Task] = set()

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def delivered(self) -> bool:
        return self._delivered

    async def start(self, endpoint: RedirectEndpoint, on_code: OnCode) -> None:
        """endpoint의 domain:port에 바인딩하고 요청 수신을 시작합니다.

        바인딩이 끝나면 바로 반환합니다.

        Raises:
            CallbackError: 포트를 열 수 없는 경우 (이미 사용 중 등)
        """
        if self._server is not None:
            raise CallbackError("콜백 리스너가 이미 실행 중입니다.")

        self._endpoint = endpoint
        self._on_code = on_code
        self._delivered = False

        logger.debug(
            "콜백 서버 생성: domain=%s, port=%d, path=%s",
            endpoint.domain,
            endpoint.port,
            endpoint.path,
        )
        try:
            self._server = await asyncio.start_server(
                self._handle_connection, host=endpoint.domain, port=endpoint.port
            )
        except OSError as e:
            raise CallbackError(
                f"콜백 서버를 시작할 수 없습니다 ({endpoint.domain}:{endpoint.port}): {e}"
            ) from e
        logger.info("콜백 대기 중: %s", endpoint.uri)

    async def stop(self) -> None:
        """포트를 해제합니다. 이미 중지된 경우에도 안전하게 호출할 수 있습니다."""
        if self._server is None:
            return

        server, self._server = self._server, None
        server.close()

        current = asyncio.current_task()
        pending = [task for task in self._handlers if task is not current]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await server.wait_closed()
        logger.debug("콜백 서버 중지: %s", self._endpoint.uri if self._endpoint else "-")

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._handlers.add(task)
        try:
            await self._handle_request(reader, writer)
        except (asyncio.TimeoutError, ConnectionError, asyncio.IncompleteReadError):
            logger.debug("콜백 연결이 요청 없이 종료되었습니다.")
        finally:
            if task is not None:
                self._handlers.discard(task)
            writer.close()

    async def _handle_request(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        request_line = await asyncio.wait_for(
            reader.readline(), timeout=HEADER_READ_TIMEOUT_SECONDS
        )
        if not request_line:
            return

        parts = request_line.decode("latin-1").split()
        if len(parts) < 2:
            await self._respond(writer, 400, "잘못된 요청입니다.")
            return
        method, target = parts[0].upper(), parts[1]

        # 헤더는 사용하지 않으므로 빈 줄까지 읽고 버림
        while True:
            line = await asyncio.wait_for(
                reader.readline(), timeout=HEADER_READ_TIMEOUT_SECONDS
            )
            if line in (b"\r\n", b"\n", b""):
                break

        url = urlsplit(target)
        assert self._endpoint is not None and self._on_code is not None

        if url.path != self._endpoint.path:
            logger.debug("콜백 경로가 아닌 요청 무시: %s %s", method, url.path)
            await self._respond(writer, 404, "페이지를 찾을 수 없습니다.")
            return

        if method != "GET":
            await self._respond(writer, 405, "GET 요청만 지원합니다.")
            return

        if self._delivered:
            logger.warning("이미 처리된 콜백에 대한 추가 요청을 거부합니다.")
            await self._respond(writer, 410, "인증 요청이 이미 처리되었습니다.")
            return

        result = self._parse_result(url.query)
        self._delivered = True

        # 첫 요청만 처리: 새 연결 수신 중단
        if self._server is not None:
            self._server.close()

        if result.ok:
            logger.info("인증 코드 수신")
        else:
            logger.warning("콜백 오류 수신: %s", result.error)

        succeeded = await self._on_code(result)

        if succeeded:
            await self._respond(
                writer, 200, "인증이 완료되었습니다. 이 창을 닫아도 됩니다."
            )
        else:
            await self._respond(
                writer, 400, f"인증에 실패했습니다: {result.error or 'token_exchange_failed'}"
            )

    @staticmethod
    def _parse_result(query: str) -> CallbackResult:
        """쿼리 문자열에서 code / error 값을 추출합니다."""
        params = parse_qs(query)
        code = params.get("code", [None])[0]
        error = params.get("error", [None])[0]
        description = params.get("error_description", [None])[0]

        if not code and not error:
            error = "missing_code"
        return CallbackResult(code=code, error=error, error_description=description)

    @staticmethod
    async def _respond(writer: asyncio.StreamWriter, status: int, message: str) -> None:
        body = (
            "<html><head><meta charset=\"utf-8\"></head>"
            f"<body><h1>{escape(message)}</h1></body></html>"
        ).encode("utf-8")
        head = (
            f"HTTP/1.1 {status} {_REASONS.get(status, 'OK')}\r\n"
            "Content-Type: text/html; charset=utf-8\r\n"
            f"Content-Length: {len(body)}\r\n"
            "Connection: close\r\n\r\n"
        ).encode("latin-1")
        writer.write(head + body)
        await writer.drain()
