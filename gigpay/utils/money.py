"""Decimal helpers for currency amounts."""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Sequence

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Any) -> Decimal:
    """Convert ``value`` to a Decimal with two places.

    Floats go through ``str`` so SQLite's float storage does not leak binary
    artefacts into the arithmetic. Raises ``ValueError`` on invalid input.
    """

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise ValueError(f"Invalid money amount: {value!r}") from exc
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def split_by_percentages(total: Decimal, percentages: Sequence[Decimal]) -> list[Decimal]:
    """Split ``total`` by ``percentages`` so the parts sum to ``total`` exactly.

    Each part is rounded to cents; the last part absorbs the rounding remainder.
    """

    total = to_money(total)
    parts: list[Decimal] = []
    for pct in percentages[:-1]:
        parts.append((total * Decimal(pct) / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP))
    if percentages:
        parts.append(total - sum(parts, Decimal("0")))
    return parts


__all__ = ["CENT", "HUNDRED", "to_money", "split_by_percentages"]
