from decimal import Decimal

import pytest

from charts.codec import FLOAT
from charts.errors import ReductionError
from charts.models import Point
from charts.reduce import check_partition, sum_lower_resolution, weighted_average
from charts.resolutions import Resolution
from tests.utils import d, decimal_points


def test_weighted_average_daily_to_weekly() -> None:
    """(2*3 + 1.75*4 + 3*1) / (1+3+4+1), not the plain mean of the four days"""
    values = decimal_points(
        ("2022-11-09", "0"), ("2022-11-10", "2"), ("2022-11-11", "1.75"), ("2022-11-12", "3")
    )
    weights = decimal_points(
        ("2022-11-09", 1), ("2022-11-10", 3), ("2022-11-11", 4), ("2022-11-12", 1)
    )

    result = weighted_average(values, weights, Resolution.WEEK)

    assert [p.date for p in result] == [d("2022-11-07")]
    assert FLOAT.stringify(result[0].value) == "1.7777777777777777"
    assert result[0].value != sum(p.value for p in values) / len(values)


def test_weighted_average_monthly_to_yearly() -> None:
    values = decimal_points(
        ("2022-11-01", "1.7777777777777777"),
        ("2022-12-01", "4"),
        ("2023-01-01", "0"),
        ("2023-02-01", "1"),
        ("2023-03-01", "2"),
    )
    weights = decimal_points(
        ("2022-11-01", 9),
        ("2022-12-01", 1),
        ("2023-01-01", 1),
        ("2023-02-01", 1),
        ("2023-03-01", 1),
    )

    result = weighted_average(values, weights, Resolution.YEAR)

    assert [(p.date, FLOAT.stringify(p.value)) for p in result] == [
        (d("2022-01-01"), "2"),
        (d("2023-01-01"), "1"),
    ]


def test_weighted_average_formula() -> None:
    values = decimal_points(("2023-05-01", "10"), ("2023-05-02", "20"), ("2023-05-31", "40"))
    weights = decimal_points(("2023-05-01", 1), ("2023-05-02", 2), ("2023-05-31", 5))

    result = weighted_average(values, weights, Resolution.MONTH)

    assert result == [Point(d("2023-05-01"), Decimal(10 + 40 + 200) / Decimal(8))]


def test_zero_weight_bucket_is_zero() -> None:
    values = decimal_points(("2022-12-26", "5"), ("2022-12-27", "7"))
    weights = decimal_points(("2022-12-26", 0), ("2022-12-27", 0))

    assert weighted_average(values, weights, Resolution.WEEK) == [
        Point(d("2022-12-26"), Decimal(0))
    ]


def test_empty_buckets_produce_no_points() -> None:
    """Sparseness is preserved: the weeks in between have no data and get no point"""
    values = decimal_points(("2023-01-02", "1"), ("2023-03-01", "2"))
    weights = decimal_points(("2023-01-02", 1), ("2023-03-01", 1))

    result = weighted_average(values, weights, Resolution.WEEK)

    assert [p.date for p in result] == [d("2023-01-02"), d("2023-02-27")]
    assert weighted_average([], weights, Resolution.WEEK) == []


def test_weights_without_values_are_ignored() -> None:
    values = decimal_points(("2023-01-03", "4"))
    weights = decimal_points(("2023-01-02", 100), ("2023-01-03", 2), ("2023-01-10", 3))

    assert weighted_average(values, weights, Resolution.WEEK) == [
        Point(d("2023-01-02"), Decimal(4))
    ]


def test_partial_bucket_only_uses_points_present() -> None:
    """A window starting mid-week averages only the days it holds, no extrapolation"""
    values = decimal_points(("2023-01-05", "2"), ("2023-01-06", "4"))
    weights = decimal_points(("2023-01-05", 1), ("2023-01-06", 1))

    assert weighted_average(values, weights, Resolution.WEEK) == [
        Point(d("2023-01-02"), Decimal(3))
    ]


def test_missing_weight_raises() -> None:
    values = decimal_points(("2023-01-05", "2"), ("2023-01-06", "4"))
    weights = decimal_points(("2023-01-05", 1))

    with pytest.raises(ReductionError):
        weighted_average(values, weights, Resolution.WEEK)


def test_sum_lower_resolution() -> None:
    values = decimal_points(
        ("2022-11-09", 1), ("2022-11-10", 3), ("2022-11-30", 5), ("2023-02-01", 1)
    )

    assert sum_lower_resolution(values, Resolution.MONTH) == decimal_points(
        ("2022-11-01", 9), ("2023-02-01", 1)
    )


def test_check_partition() -> None:
    check_partition(Resolution.DAY, Resolution.MONTH)
    check_partition(Resolution.MONTH, Resolution.YEAR)
    with pytest.raises(ValueError):
        check_partition(Resolution.WEEK, Resolution.MONTH)
