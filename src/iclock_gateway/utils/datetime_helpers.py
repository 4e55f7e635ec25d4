"""Conversions between naive datetimes and their sqlite text form"""

from datetime import datetime
from typing import Optional, Union

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def to_db(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime(DATETIME_FORMAT)


def from_db(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.strptime(value[:19], DATETIME_FORMAT)
    except ValueError:
        return None
