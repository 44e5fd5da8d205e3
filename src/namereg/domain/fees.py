"""Fee table, fee calculation, and fixed-width checked arithmetic.

Amounts and timestamps are non-negative integers bounded by
:data:`AMOUNT_MAX` (the range of a SQLite ``INTEGER``). Arithmetic is done
as the fixed-width type would do it and then verified, so a wrapped result
is detected and raised instead of stored.

Pricing uses four buckets keyed on the effective character count:
exactly 1, exactly 3, exactly 4, and everything else. Counts 0 and 2 land
in the default bucket together with 5 and above.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from namereg.domain.errors import ArithmeticOverflow, FeeOverflow, InvalidDuration
from namereg.domain.names import count_effective_characters

AMOUNT_BITS = 63
AMOUNT_MAX = (1 << AMOUNT_BITS) - 1
_MODULUS = 1 << AMOUNT_BITS

MIN_YEARS = 1
MAX_YEARS = 60
SECONDS_PER_YEAR = 365 * 24 * 60 * 60


class FeeBucket(StrEnum):
    """Fee table buckets."""

    ONE = "1"
    THREE = "3"
    FOUR = "4"
    DEFAULT = "default"


_EXACT_BUCKETS: dict[int, FeeBucket] = {
    1: FeeBucket.ONE,
    3: FeeBucket.THREE,
    4: FeeBucket.FOUR,
}


def bucket_for(count: int) -> FeeBucket:
    """Map an effective character count to its bucket."""
    return _EXACT_BUCKETS.get(count, FeeBucket.DEFAULT)


class FeeTable(BaseModel):
    """Unit price per year for each bucket, in the fee asset's smallest unit."""

    model_config = {"frozen": True}

    one: int = Field(default=0, ge=0, le=AMOUNT_MAX)
    three: int = Field(default=0, ge=0, le=AMOUNT_MAX)
    four: int = Field(default=0, ge=0, le=AMOUNT_MAX)
    default: int = Field(default=0, ge=0, le=AMOUNT_MAX)

    def price(self, bucket: FeeBucket) -> int:
        return {
            FeeBucket.ONE: self.one,
            FeeBucket.THREE: self.three,
            FeeBucket.FOUR: self.four,
            FeeBucket.DEFAULT: self.default,
        }[bucket]

    def with_price(self, bucket: FeeBucket, amount: int) -> FeeTable:
        """Return a copy with *bucket* set to *amount* (validated)."""
        field = {
            FeeBucket.ONE: "one",
            FeeBucket.THREE: "three",
            FeeBucket.FOUR: "four",
            FeeBucket.DEFAULT: "default",
        }[bucket]
        return FeeTable.model_validate({**self.model_dump(), field: amount})

    def as_buckets(self) -> dict[str, int]:
        return {str(bucket): self.price(bucket) for bucket in FeeBucket}


# ---------------------------------------------------------------------------
# Checked arithmetic
# ---------------------------------------------------------------------------


def checked_mul(
    a: int,
    b: int,
    *,
    error: type[ArithmeticOverflow] = ArithmeticOverflow,
) -> int:
    """Multiply in the fixed-width type; raise *error* if the product wrapped.

    The wrapped product is divided back by *a* and compared with *b*.
    """
    product = (a * b) % _MODULUS
    if a != 0 and product // a != b:
        raise error(f"{a} * {b} overflows {AMOUNT_BITS}-bit amount", a=a, b=b)
    return product


def checked_add(
    a: int,
    b: int,
    *,
    error: type[ArithmeticOverflow] = ArithmeticOverflow,
) -> int:
    """Add in the fixed-width type; raise *error* if the sum wrapped."""
    total = (a + b) % _MODULUS
    if total < a:
        raise error(f"{a} + {b} overflows {AMOUNT_BITS}-bit amount", a=a, b=b)
    return total


# ---------------------------------------------------------------------------
# Fee calculation
# ---------------------------------------------------------------------------


def validate_years(years: int) -> int:
    """Raise :class:`InvalidDuration` unless ``1 <= years <= 60``."""
    if isinstance(years, bool) or not isinstance(years, int):
        raise InvalidDuration(f"Duration must be an integer, got {years!r}", years=years)
    if not MIN_YEARS <= years <= MAX_YEARS:
        raise InvalidDuration(
            f"Duration must be between {MIN_YEARS} and {MAX_YEARS} years, got {years}",
            years=years,
        )
    return years


def base_fee(name: str | bytes, table: FeeTable) -> int:
    """Price per year for *name*."""
    return table.price(bucket_for(count_effective_characters(name)))


def total_fee(name: str | bytes, years: int, table: FeeTable) -> int:
    """``base_fee * years``, overflow-checked.

    Raises:
        InvalidDuration: *years* out of range.
        FeeOverflow: The product does not fit the amount type.
    """
    validate_years(years)
    return checked_mul(base_fee(name, table), years, error=FeeOverflow)


def duration_seconds(years: int) -> int:
    """Length of *years* registration years (365 days each)."""
    return validate_years(years) * SECONDS_PER_YEAR
