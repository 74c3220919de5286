from __future__ import annotations
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from board_agent.core.config import config
from board_agent.core.logger import get_logger

logger = get_logger(__name__)

_WEEKDAYS_EN = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _zone(tz_name: Optional[str]):
    name = tz_name or config.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("알 수 없는 타임존, UTC 사용: %s", name)
        return timezone.utc


def local_today(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> date:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(_zone(tz_name)).date()


def get_date_context(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> Dict[str, str]:
    """프롬프트에 넣을 today/tomorrow/dayAfterTomorrow/dayOfWeek (YYYY-MM-DD)"""
    today = local_today(now, tz_name)
    return {
        "today": today.isoformat(),
        "tomorrow": (today + timedelta(days=1)).isoformat(),
        "day_after_tomorrow": (today + timedelta(days=2)).isoformat(),
        "day_of_week": _WEEKDAYS_EN[today.weekday()],
    }


def parse_day(value: Optional[str]) -> Optional[date]:
    """'YYYY-MM-DD' 또는 ISO datetime 앞부분을 date 로. 형식이 틀리면 None."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None
