"""Exact fixed-point conversion between native integer units and decimal strings."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

ETHER_DECIMALS = 18


def format_units(value: int, decimals: int = ETHER_DECIMALS) -> str:
    """Scale an integer amount down by ``decimals`` places.

    Always keeps at least one fractional digit and strips trailing zeros:
    ``10**18 -> "1.0"``, ``1_500_000_000_000_000_000 -> "1.5"``, ``1 -> "0.000000000000000001"``.
    """
    value = int(value)
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10**decimals)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{frac_str}"


def format_ether(value: int) -> str:
    return format_units(value, ETHER_DECIMALS)


def parse_units(amount: str, decimals: int = ETHER_DECIMALS) -> int:
    """Inverse of :func:`format_units`. Raises ValueError on precision loss."""
    try:
        d = Decimal(amount)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {amount!r}") from exc

    scaled = d.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{amount!r} has more than {decimals} decimal places")
    return int(scaled)
