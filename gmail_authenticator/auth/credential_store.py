"""토큰 파일 저장소 - JSON 토큰 읽기/쓰기"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

from gmail_authenticator.errors import NotFoundError
from gmail_authenticator.logger import get_logger
from gmail_authenticator.models import CredentialToken

logger = get_logger("auth.store")


class CredentialStore:
    """디스크의 토큰 파일을 관리합니다. 네트워크 접근은 하지 않습니다."""

    async def load(self, path: Path | str) -> CredentialToken:
        """토큰 파일을 읽어 CredentialToken으로 반환합니다.

        Raises:
            NotFoundError: 파일이 없거나 JSON이 아니거나 access_token이 없는 경우
        """
        token_path = Path(path)
        logger.debug("토큰 파일 로드: %s", token_path)

        try:
            text = await asyncio.to_thread(token_path.read_text, encoding="utf-8")
        except OSError as e:
            raise NotFoundError(
                f"토큰 파일을 읽을 수 없습니다: {token_path} ({e})", path=token_path
            ) from e

        try:
            return CredentialToken.from_dict(json.loads(text))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise NotFoundError(
                f"토큰 파일 형식이 올바르지 않습니다: {token_path}", path=token_path
            ) from e

    async def save(self, path: Path | str, token: CredentialToken) -> None:
        """토큰을 JSON으로 저장합니다. 같은 경로의 기존 파일은 덮어씁니다."""
        token_path = Path(path)
        await asyncio.to_thread(self._write, token_path, token)
        logger.info("토큰 저장 완료: %s", token_path)

    @staticmethod
    def _write(token_path: Path, token: CredentialToken) -> None:
        if not token_path.parent.exists():
            logger.debug("디렉토리 %s 가 없어 생성합니다.", token_path.parent)
        token_path.parent.mkdir(parents=True, exist_ok=True)

        # 임시 파일 → os.replace (읽는 쪽은 항상 완전한 파일만 봄)
        tmp_path = token_path.with_name(token_path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(token.to_dict(), f)
            os.replace(tmp_path, token_path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
