from __future__ import annotations
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from board_agent.core.config import config


LOG_DIR = Path(config.LOG_DIR)


def setup_logging(level: int | str | None = None):
    """Configure root logger with console and rotating file handlers."""
    root = logging.getLogger()
    if root.handlers:
        return  # already configured

    level = level or config.LOG_LEVEL
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root.addHandler(sh)

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(LOG_DIR / "board_agent.log", maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(fmt)
        root.addHandler(fh)
    except OSError:
        # 읽기 전용 파일시스템 등에서는 콘솔 로깅만 사용
        root.warning("로그 디렉터리를 사용할 수 없어 파일 로깅을 건너뜁니다: %s", LOG_DIR)

    root.setLevel(level)


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
