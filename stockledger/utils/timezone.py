from datetime import datetime
import pytz

from stockledger.config import settings

BUSINESS_TZ = pytz.timezone(settings.BUSINESS_TIMEZONE)


def get_business_now():
    """Get current server time in the business timezone"""
    return datetime.now(BUSINESS_TZ)


def utc_now():
    return datetime.now(pytz.utc)
