"""Derive lower-resolution series from higher-resolution ones.

Averages are weighted by the number of underlying events in each fine bucket:

    value(coarse) = sum(v_i * w_i) / sum(w_i)

for every fine point i inside the coarse bucket. A plain mean of the fine values would give a day
with one block the same influence as a day with ten thousand.
"""

import datetime
from collections.abc import Sequence
from decimal import Context, Decimal, localcontext
from typing import TypeVar

from charts.errors import ReductionError
from charts.models import Point, Series
from charts.resolutions import Resolution

PRECISION = Context(prec=34)

V = TypeVar("V")


def check_partition(fine: Resolution, coarse: Resolution) -> None:
    if not fine.partitions(coarse):
        raise ValueError(f"{fine.name} buckets do not fit into {coarse.name} buckets")


def group_by_bucket(
    points: Sequence[Point[V]], resolution: Resolution
) -> dict[datetime.date, list[Point[V]]]:
    groups: dict[datetime.date, list[Point[V]]] = {}
    for point in points:
        groups.setdefault(resolution.bucket_start(point.date), []).append(point)
    return groups


def weighted_average(
    values: Sequence[Point[Decimal]],
    weights: Sequence[Point[Decimal]],
    resolution: Resolution,
) -> Series[Decimal]:
    """Reduce `values` into `resolution` buckets, weighting each by the point of `weights` with
    the same date.

    A coarse bucket whose weights sum to zero gets the value 0. Coarse buckets without any fine
    value produce no point. A fine value without a weight raises `ReductionError`.
    """
    weight_by_date = {p.date: p.value for p in weights}
    result: Series[Decimal] = []
    with localcontext(PRECISION):
        for bucket, points in sorted(group_by_bucket(values, resolution).items()):
            weighted_sum, total_weight = Decimal(0), Decimal(0)
            for point in points:
                try:
                    weight = weight_by_date[point.date]
                except KeyError:
                    raise ReductionError(f"No weight for {point.date}") from None
                weighted_sum += point.value * weight
                total_weight += weight
            if total_weight == 0:
                result.append(Point(bucket, Decimal(0)))
            else:
                result.append(Point(bucket, weighted_sum / total_weight))
    return result


def sum_lower_resolution(
    values: Sequence[Point[Decimal]], resolution: Resolution
) -> Series[Decimal]:
    with localcontext(PRECISION):
        return [
            Point(bucket, sum((p.value for p in points), Decimal(0)))
            for bucket, points in sorted(group_by_bucket(values, resolution).items())
        ]
