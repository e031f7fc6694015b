import datetime

import pytest
import pytz

from s3_to_redshift import staleness
from s3_to_redshift.exceptions import ConfigurationError


def utc(*args):
    return datetime.datetime(*args, tzinfo=pytz.UTC)


@pytest.mark.parametrize('granularity', [staleness.HOUR, staleness.DAY])
def test_truncate_date_is_idempotent(granularity):
    date = utc(2017, 8, 15, 21, 34, 12, 500)
    once = staleness.truncate_date(date, granularity)

    assert staleness.truncate_date(once, granularity) == once


def test_truncate_date():
    date = utc(2017, 8, 15, 21, 34, 12)

    assert staleness.truncate_date(date, 'hour') == utc(2017, 8, 15, 21)
    assert staleness.truncate_date(date, 'day') == utc(2017, 8, 15)
    # Anything else is treated as a day
    assert staleness.truncate_date(date, 'week') == utc(2017, 8, 15)


@pytest.mark.parametrize('granularity', [staleness.HOUR, staleness.DAY])
def test_is_input_data_stale_without_target_data(granularity):
    assert not staleness.is_input_data_stale(utc(2017, 8, 15), None, granularity)


def test_is_input_data_stale_day_granularity():
    target = utc(2017, 8, 15, 21)
    input_date = utc(2017, 8, 15, 14)

    assert not staleness.is_input_data_stale(input_date, target, 'day', pytz.UTC)


def test_is_input_data_stale_hour_granularity():
    target = utc(2017, 8, 15, 21)
    input_date = utc(2017, 8, 15, 14)

    assert staleness.is_input_data_stale(input_date, target, 'hour', pytz.UTC)


def test_is_input_data_stale_same_period():
    target = utc(2017, 8, 15, 14, 30)

    assert not staleness.is_input_data_stale(utc(2017, 8, 15, 14), target, 'hour')


def test_is_input_data_stale_naive_target_is_utc():
    target = datetime.datetime(2017, 8, 16, 1)

    assert staleness.is_input_data_stale(utc(2017, 8, 15, 14), target, 'day')


def test_is_input_data_stale_with_date_column():
    input_date = utc(2017, 8, 15, 23)

    assert not staleness.is_input_data_stale(input_date, datetime.date(2017, 8, 14), 'day')
    assert not staleness.is_input_data_stale(input_date, datetime.date(2017, 8, 15), 'day')
    assert staleness.is_input_data_stale(input_date, datetime.date(2017, 8, 16), 'day')


def test_as_utc_treats_dates_as_midnight():
    assert staleness.as_utc(datetime.date(2017, 8, 15)) == utc(2017, 8, 15)


def test_adjust_for_timezone_uses_offset_at_date():
    los_angeles = pytz.timezone('America/Los_Angeles')

    summer = staleness.adjust_for_timezone(utc(2017, 8, 15, 23), los_angeles)
    winter = staleness.adjust_for_timezone(utc(2017, 1, 15, 23), los_angeles)

    assert summer == utc(2017, 8, 16, 6)
    assert winter == utc(2017, 1, 16, 7)


def test_is_input_data_stale_with_timezone():
    los_angeles = pytz.timezone('America/Los_Angeles')
    target = utc(2017, 8, 15, 23)
    input_date = utc(2017, 8, 15, 12)

    # Unadjusted, both fall on the same UTC day
    assert not staleness.is_input_data_stale(input_date, target, 'day', pytz.UTC)
    # Shifted by seven hours the target moves to the next day
    assert staleness.is_input_data_stale(input_date, target, 'day', los_angeles)


def test_start_end_from_granularity_utc():
    start, end = staleness.start_end_from_granularity(utc(2015, 11, 10, 23, 15), 'day')

    assert start == datetime.datetime(2015, 11, 10)
    assert end == datetime.datetime(2015, 11, 11)


def test_start_end_from_granularity_hour():
    start, end = staleness.start_end_from_granularity(utc(2015, 11, 10, 23, 15), 'hour')

    assert start == datetime.datetime(2015, 11, 10, 23)
    assert end == datetime.datetime(2015, 11, 11)


def test_start_end_from_granularity_timezone():
    start, end = staleness.start_end_from_granularity(
        utc(2015, 11, 10, 5), 'day', pytz.timezone('America/Los_Angeles')
    )

    # 05:00 UTC is still the previous day in Los Angeles
    assert start == datetime.datetime(2015, 11, 9)
    assert end == datetime.datetime(2015, 11, 10)


def test_validate_granularity():
    assert staleness.validate_granularity('stream') == 'stream'
    with pytest.raises(ConfigurationError, match='Unsupported granularity'):
        staleness.validate_granularity('minute')


def test_get_timezone():
    assert staleness.get_timezone('America/Los_Angeles').zone == 'America/Los_Angeles'
    with pytest.raises(ConfigurationError, match='Unable to load timezone'):
        staleness.get_timezone('Mars/Olympus_Mons')


def test_parse_stream_bounds():
    start, end = staleness.parse_stream_bounds('2017-08-15T00:00:00', '2017-08-15T06:00:00')

    assert start == datetime.datetime(2017, 8, 15)
    assert end == datetime.datetime(2017, 8, 15, 6)


@pytest.mark.parametrize(
    'start, end',
    [
        ('2017-08-15', '2017-08-16T00:00:00'),
        (None, '2017-08-16T00:00:00'),
        ('2017-08-16T00:00:00', '2017-08-15T00:00:00'),
        ('2017-08-16T00:00:00', '2017-08-16T00:00:00'),
    ],
)
def test_parse_stream_bounds_invalid(start, end):
    with pytest.raises(ConfigurationError):
        staleness.parse_stream_bounds(start, end)
