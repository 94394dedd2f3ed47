"""CredentialStore 테스트 - tmp_path 사용"""

import json

import pytest

from gmail_authenticator.auth.credential_store import CredentialStore
from gmail_authenticator.errors import NotFoundError
from gmail_authenticator.models import CredentialToken


@pytest.fixture
def store():
    return CredentialStore()


@pytest.fixture
def token():
    return CredentialToken(
        access_token="access-1",
        refresh_token="refresh-1",
        scope="https://www.googleapis.com/auth/gmail.readonly",
        token_type="Bearer",
        expiry_date=1700000000000,
    )


class TestCredentialStore:
    """CredentialStore 테스트"""

    @pytest.mark.asyncio
    async def test_save_and_load(self, store, token, tmp_path):
        """저장 후 같은 경로에서 로드하면 동일한 토큰"""
        path = tmp_path / "tokens" / "abc-token.json"
        await store.save(path, token)

        loaded = await store.load(path)
        assert loaded == token

    @pytest.mark.asyncio
    async def test_save_creates_nested_directory(self, store, token, tmp_path):
        """상위 디렉토리가 없으면 생성"""
        path = tmp_path / "a" / "b" / "token.json"
        await store.save(path, token)
        assert path.exists()

    @pytest.mark.asyncio
    async def test_save_existing_directory(self, store, token, tmp_path):
        """디렉토리가 이미 있어도 실패하지 않음"""
        (tmp_path / "tokens").mkdir()
        await store.save(tmp_path / "tokens" / "token.json", token)
        await store.save(tmp_path / "tokens" / "other.json", token)
        assert sorted(p.name for p in (tmp_path / "tokens").iterdir()) == [
            "other.json",
            "token.json",
        ]

    @pytest.mark.asyncio
    async def test_save_overwrites(self, store, token, tmp_path):
        """같은 경로에 두 번 저장하면 두 번째 토큰만 남음"""
        path = tmp_path / "token.json"
        second = CredentialToken(access_token="access-2", refresh_token="refresh-2")

        await store.save(path, token)
        await store.save(path, second)

        loaded = await store.load(path)
        assert loaded == second
        assert list(tmp_path.iterdir()) == [path]

    @pytest.mark.asyncio
    async def test_file_format(self, store, token, tmp_path):
        """구글 토큰 파일과 같은 snake_case 키로 저장"""
        path = tmp_path / "token.json"
        await store.save(path, token)

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw == {
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "scope": "https://www.googleapis.com/auth/gmail.readonly",
            "token_type": "Bearer",
            "expiry_date": 1700000000000,
        }

    @pytest.mark.asyncio
    async def test_load_missing_file(self, store, tmp_path):
        """파일이 없으면 NotFoundError"""
        path = tmp_path / "missing.json"
        with pytest.raises(NotFoundError) as exc_info:
            await store.load(path)
        assert exc_info.value.path == path

    @pytest.mark.asyncio
    async def test_load_invalid_json(self, store, tmp_path):
        """JSON이 아니면 NotFoundError"""
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(NotFoundError):
            await store.load(path)

    @pytest.mark.asyncio
    async def test_load_without_access_token(self, store, tmp_path):
        """access_token이 없으면 NotFoundError"""
        path = tmp_path / "partial.json"
        path.write_text(json.dumps({"refresh_token": "r"}), encoding="utf-8")
        with pytest.raises(NotFoundError):
            await store.load(path)

    @pytest.mark.asyncio
    async def test_failed_write_removes_temp_file(self, store, token, tmp_path):
        """직렬화 실패 시 임시 파일을 남기지 않고 기존 파일은 유지"""
        path = tmp_path / "abc-token.json"
        await store.save(path, token)

        broken = CredentialToken(access_token=b"not-json")
        with pytest.raises(TypeError):
            await store.save(path, broken)

        assert not (tmp_path / "abc-token.json.tmp").exists()
        assert await store.load(path) == token

    @pytest.mark.asyncio
    async def test_failed_replace_removes_temp_file(self, store, token, tmp_path, monkeypatch):
        """os.replace 실패 시 임시 파일 삭제 후 오류 전달"""
        from gmail_authenticator.auth import credential_store

        def failing_replace(src, dst):
            raise PermissionError("read-only")

        monkeypatch.setattr(credential_store.os, "replace", failing_replace)
        path = tmp_path / "abc-token.json"

        with pytest.raises(PermissionError):
            await store.save(path, token)

        assert not (tmp_path / "abc-token.json.tmp").exists()
        assert not path.exists()
