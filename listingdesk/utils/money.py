from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


def parse_amount(raw: str | int | float | Decimal | None) -> Decimal | None:
    """Parse a user-typed amount ("1,250.50", "$99") into a Decimal; None when unusable."""
    if raw is None:
        return None
    text = str(raw).strip().replace(",", "").lstrip("$").strip()
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def dollars(amount: int | float | Decimal) -> str:
    d = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"${d:,}"
