"""
Minor-unit conversion for gateway amounts.

Card gateways transmit amounts as integers in the currency's smallest unit
(cents for USD, whole yen for JPY). Every adapter converts through these
helpers so a decimal amount never reaches a gateway unrounded.
"""

from decimal import ROUND_HALF_UP, Decimal

# ISO 4217 currencies without a minor unit, as treated by card gateways
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})


def minor_unit_factor(currency: str) -> int:
    """Return 1 for zero-decimal currencies, 100 for everything else."""
    return 1 if (currency or "").strip().upper() in ZERO_DECIMAL_CURRENCIES else 100


def _quantum(currency: str) -> Decimal:
    return Decimal("1") if minor_unit_factor(currency) == 1 else Decimal("0.01")


def to_minor_units(amount: Decimal | int | float | str, currency: str) -> int:
    """Convert a decimal amount to the gateway's integer representation."""
    scaled = Decimal(str(amount)) * minor_unit_factor(currency)
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(minor: int, currency: str) -> Decimal:
    """Convert a gateway integer amount back to a decimal amount."""
    return (Decimal(int(minor)) / minor_unit_factor(currency)).quantize(_quantum(currency))


def normalize_amount(amount: Decimal | int | float | str, currency: str) -> Decimal:
    """Round a decimal amount to the precision of its currency (100.005 USD → 100.01)."""
    return from_minor_units(to_minor_units(amount, currency), currency)
