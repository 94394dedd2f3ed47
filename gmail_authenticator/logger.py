"""구조화된 로깅 설정 모듈"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT_LOGGER_NAME = "gmail_authenticator"


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str = "INFO",
    log_dir: str | None = None,
) -> logging.Logger:
    """구조화된 로거를 설정하고 반환합니다.

    Args:
        name: 로거 이름
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR)
        log_dir: 로그 파일 저장 디렉토리 (None이면 콘솔만 출력)

    Returns:
        설정된 Logger 인스턴스
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # 이미 핸들러가 설정되어 있으면 레벨만 갱신
    if logger.handlers:
        return logger

    # 포맷터: 2026-10-17 08:00:05 | INFO    | gmail_authenticator.auth | message
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(name)-34s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            log_path / "gmail_authenticator.log",
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(module_name: str) -> logging.Logger:
    """모듈별 하위 로거를 반환합니다.

    Args:
        module_name: 모듈 이름 (예: "auth.callback", "mailbox.poller")

    Returns:
        하위 Logger 인스턴스
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_name}")


def mask(value: str | None, keep: int = 0) -> str:
    """로그에 남기면 안 되는 값을 가립니다."""
    if not value:
        return "undefined"
    if keep and len(value) > keep:
        return value[:keep] + "***"
    return "***"
