"""Conversion between persisted chart values (exact text) and Decimal used for computation"""

import math
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

from charts.errors import SourceDataError


class ValueCodec(ABC):
    def parse(self, text: str) -> Decimal:
        try:
            value = Decimal(text)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise SourceDataError(f"Invalid stored value {text!r}") from exc
        if not value.is_finite():
            raise SourceDataError(f"Non-finite stored value {text!r}")
        return value

    @abstractmethod
    def stringify(self, value: Decimal) -> str:
        raise NotImplementedError


class DecimalCodec(ValueCodec):
    """Stores the exact decimal, `parse(stringify(v)) == v` for every finite v"""

    def stringify(self, value: Decimal) -> str:
        if not value.is_finite():
            raise SourceDataError(f"Cannot store non-finite value {value}")
        return format(value, "f")


class FloatCodec(ValueCodec):
    """For charts whose external value is a float.

    Stores the shortest text that round-trips through a float, without a trailing `.0`
    (16/9 -> "1.7777777777777777", 2 -> "2"). The stored text stays the source of truth for any
    tier derived from this one.

    This is lossy: `parse(stringify(v))` is `v` rounded to a float, not `v`. A tier reading a
    FLOAT chart computes from those rounded values, so rounding chains across tiers (the yearly
    average works from the rounded monthly text). Use `DECIMAL` where exact values matter.
    """

    def stringify(self, value: Decimal) -> str:
        as_float = float(value)
        if not math.isfinite(as_float):
            raise SourceDataError(f"Cannot store non-finite value {value}")
        if as_float == 0:
            return "0"
        return format(Decimal(repr(as_float)).normalize(), "f")


DECIMAL = DecimalCodec()
FLOAT = FloatCodec()
