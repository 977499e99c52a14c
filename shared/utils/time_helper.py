"""
Time helpers: naive-UTC timestamps and business-timezone calendar days
"""
from datetime import date, datetime, timezone
from typing import Optional

import pytz

from ..config.settings import settings


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every stored datetime uses"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_date(moment: Optional[datetime] = None, tz_name: Optional[str] = None) -> date:
    """Calendar day of a naive-UTC instant in the business timezone"""
    moment = moment or utcnow()
    tz = pytz.timezone(tz_name or settings.business_timezone)
    return pytz.utc.localize(moment).astimezone(tz).date()
