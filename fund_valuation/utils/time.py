"""Time utilities (provider local calendar, Asia/Shanghai)."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from fund_valuation.config import settings

PROVIDER_TZ = ZoneInfo(settings.TIMEZONE)


def now_provider() -> datetime:
    """Current time in the quote provider's timezone."""
    return datetime.now(PROVIDER_TZ)


def provider_today() -> date:
    """
    Today's date as the quote provider sees it.

    NAV postings are dated in China local time, so "posted today" must be
    judged against this calendar rather than the host's.
    """
    return now_provider().date()


def parse_iso_date(value: object) -> date | None:
    """Parse a YYYY-MM-DD string (or datetime prefix); None when unusable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if len(text) < 10:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None
