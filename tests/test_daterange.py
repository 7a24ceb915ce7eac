import os
import time
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from rutd.engine.daterange import add_months, parse_date_range
from rutd.engine.errors import InvalidDate

NOW = datetime(2024, 6, 15, 10, 0)


def _local(*args) -> datetime:
    return datetime(*args).astimezone()


class TestAbsolute:
    def test_day(self):
        rng = parse_date_range("2024/06/03", NOW)
        assert (rng.start, rng.end) == (_local(2024, 6, 3), _local(2024, 6, 4))

    def test_month(self):
        rng = parse_date_range("2023/02", NOW)
        assert (rng.start, rng.end) == (_local(2023, 2, 1), _local(2023, 3, 1))

    def test_year(self):
        rng = parse_date_range("2023", NOW)
        assert (rng.start, rng.end) == (_local(2023, 1, 1), _local(2024, 1, 1))

    def test_december_rolls_over(self):
        rng = parse_date_range("2023/12", NOW)
        assert rng.end == _local(2024, 1, 1)

    def test_span(self):
        rng = parse_date_range("2023-2024", NOW)
        assert (rng.start, rng.end) == (_local(2023, 1, 1), _local(2025, 1, 1))

    def test_open_start(self):
        rng = parse_date_range("-2023/12/31", NOW)
        assert rng.start is None
        assert rng.end == _local(2024, 1, 1)

    def test_open_end(self):
        rng = parse_date_range("2024/06-", NOW)
        assert rng.start == _local(2024, 6, 1)
        assert rng.end is None


class TestRelative:
    def test_days(self):
        rng = parse_date_range("7d", NOW)
        assert (rng.start, rng.end) == (_local(2024, 6, 8), _local(2024, 6, 9))

    def test_weeks_round_to_monday(self):
        rng = parse_date_range("2w", NOW)
        assert (rng.start, rng.end) == (_local(2024, 5, 27), _local(2024, 6, 3))

    def test_bare_unit_is_current_period(self):
        rng = parse_date_range("m", NOW)
        assert (rng.start, rng.end) == (_local(2024, 6, 1), _local(2024, 7, 1))

    def test_years(self):
        rng = parse_date_range("1y", NOW)
        assert (rng.start, rng.end) == (_local(2023, 1, 1), _local(2024, 1, 1))

    def test_combined_units_round_by_last(self):
        rng = parse_date_range("1m2d", NOW)
        assert (rng.start, rng.end) == (_local(2024, 5, 13), _local(2024, 5, 14))

    def test_exact(self):
        rng = parse_date_range("+3d", NOW)
        assert rng.start == rng.end == _local(2024, 6, 12, 10, 0)

    def test_relative_span(self):
        rng = parse_date_range("7d-d", NOW)
        assert (rng.start, rng.end) == (_local(2024, 6, 8), _local(2024, 6, 16))

    def test_aware_now(self):
        rng = parse_date_range("d", NOW.astimezone())
        assert rng.start == _local(2024, 6, 15)


class TestInvalid:
    @pytest.mark.parametrize("text", ["2023/13", "abc", "1-2-3", "2024/02/30", "3x", "1/2/3/4", ""])
    def test_rejected(self, text):
        with pytest.raises(InvalidDate):
            parse_date_range(text, NOW)


class TestAddMonths:
    def test_clamps_day(self):
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
        assert add_months(datetime(2023, 3, 31), -1) == datetime(2023, 2, 28)

    def test_crosses_year(self):
        assert add_months(datetime(2024, 11, 15), 3) == datetime(2025, 2, 15)
        assert add_months(datetime(2024, 1, 15), -13) == datetime(2022, 12, 15)


@pytest.fixture
def sao_paulo():
    """Local time zone with a midnight spring-forward (2018-11-04) and a fall-back (2019-02-17)."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available")
    try:
        ZoneInfo("America/Sao_Paulo")
    except ZoneInfoNotFoundError:
        pytest.skip("tz database not available")

    saved = os.environ.get("TZ")
    os.environ["TZ"] = "America/Sao_Paulo"
    time.tzset()
    yield
    if saved is None:
        del os.environ["TZ"]
    else:
        os.environ["TZ"] = saved
    time.tzset()


class TestDaylightSaving:
    def test_skipped_midnight_is_rejected(self, sao_paulo):
        with pytest.raises(InvalidDate, match="Nonexistent"):
            parse_date_range("2018/11/04", NOW)

    def test_skipped_midnight_as_end_is_rejected(self, sao_paulo):
        with pytest.raises(InvalidDate):
            parse_date_range("-2018/11/03", NOW)

    def test_repeated_hour_takes_earliest_start_and_latest_end(self, sao_paulo):
        # 23:30 on 2019-02-16 happens twice: at -02:00 and again at -03:00
        now = datetime(2019, 2, 16, 23, 30)
        rng = parse_date_range("+0d", now)
        assert rng.start.utcoffset() == timedelta(hours=-2)
        assert rng.end.utcoffset() == timedelta(hours=-3)
        assert rng.end - rng.start == timedelta(hours=1)

    def test_ordinary_day_around_transition(self, sao_paulo):
        rng = parse_date_range("2019/02/16", NOW)
        assert rng.start.utcoffset() == timedelta(hours=-2)
        assert rng.end.utcoffset() == timedelta(hours=-3)
        assert rng.end - rng.start == timedelta(hours=25)
