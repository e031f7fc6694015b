"""Decide whether an input snapshot is newer than the data already loaded."""
import datetime
from typing import Optional, Tuple

import pytz

from s3_to_redshift.exceptions import ConfigurationError

HOUR = 'hour'
DAY = 'day'
# Disables staleness checks; the load window is given explicitly instead
STREAM = 'stream'

SUPPORTED_GRANULARITIES = (HOUR, DAY, STREAM)

STREAM_TIME_FORMAT = '%Y-%m-%dT%H:%M:%S'

_DURATIONS = {
    HOUR: datetime.timedelta(hours=1),
    DAY: datetime.timedelta(days=1),
}


def validate_granularity(granularity: str) -> str:
    if granularity not in SUPPORTED_GRANULARITIES:
        raise ConfigurationError(
            f"Unsupported granularity {granularity!r}, must be one of "
            f"{', '.join(SUPPORTED_GRANULARITIES)}"
        )
    return granularity


def get_timezone(name: str) -> datetime.tzinfo:
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ConfigurationError(f"Unable to load timezone {name!r}")


def as_utc(date: datetime.datetime) -> datetime.datetime:
    """Timestamps read from the warehouse carry no zone and are taken as UTC.

    A `date` column yields plain dates, which stand for midnight.
    """
    if not isinstance(date, datetime.datetime):
        date = datetime.datetime.combine(date, datetime.time())
    if date.tzinfo is None:
        return date.replace(tzinfo=pytz.UTC)
    return date.astimezone(pytz.UTC)


def truncate_date(date: datetime.datetime, granularity: str) -> datetime.datetime:
    """Round `date` down to the start of its hour or day.

    Anything other than 'hour' is treated as day granularity.
    """
    if granularity == HOUR:
        return date.replace(minute=0, second=0, microsecond=0)
    return date.replace(hour=0, minute=0, second=0, microsecond=0)


def _utc_offset(date: datetime.datetime, timezone: datetime.tzinfo) -> datetime.timedelta:
    return as_utc(date).astimezone(timezone).utcoffset() or datetime.timedelta(0)


def adjust_for_timezone(
    target_date: datetime.datetime, target_timezone: datetime.tzinfo
) -> datetime.datetime:
    """Shift a stored timestamp by the negative of `target_timezone`'s UTC offset.

    A warehouse timestamp without zone information may hold local time of a
    non-UTC zone. Shifting it this way makes the later truncation fall on that
    zone's day/hour boundaries.
    """
    return as_utc(target_date) - _utc_offset(target_date, target_timezone)


def is_input_data_stale(
    input_date: datetime.datetime,
    target_date: Optional[datetime.datetime],
    granularity: str = DAY,
    target_timezone: datetime.tzinfo = pytz.UTC,
) -> bool:
    """Return True if the warehouse already has data for the input's period or later.

    Both dates are compared after truncation to `granularity`, so with daily
    granularity input data lagging the warehouse by a couple of hours is still
    fresh, while with hourly granularity it is stale.
    """
    if target_date is None:
        return False

    target = truncate_date(adjust_for_timezone(target_date, target_timezone), granularity)
    return target > truncate_date(as_utc(input_date), granularity)


def start_end_from_granularity(
    date: datetime.datetime, granularity: str, target_timezone: datetime.tzinfo = pytz.UTC
) -> Tuple[datetime.datetime, datetime.datetime]:
    """Return the naive [start, end) window in the warehouse's clock containing `date`."""
    local = as_utc(date) + _utc_offset(date, target_timezone)
    duration = _DURATIONS.get(granularity, _DURATIONS[DAY])
    start = truncate_date(local, granularity).replace(tzinfo=None)
    return start, start + duration


def parse_stream_bounds(
    stream_start: str, stream_end: str
) -> Tuple[datetime.datetime, datetime.datetime]:
    try:
        start = datetime.datetime.strptime(stream_start, STREAM_TIME_FORMAT)
        end = datetime.datetime.strptime(stream_end, STREAM_TIME_FORMAT)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Stream start and end must be formatted as {STREAM_TIME_FORMAT}: {e}"
        )
    if end <= start:
        raise ConfigurationError(
            f"Stream end {stream_end} must be after stream start {stream_start}"
        )
    return start, end
