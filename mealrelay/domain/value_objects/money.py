"""Money value object kept in minor units"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value) -> int:
    """Round to the nearest whole cent, ties away from zero"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Money:
    cents: int
    currency: str = "USD"

    def __post_init__(self):
        if not isinstance(self.cents, int):
            raise ValueError("Amount must be a whole number of cents")
        if not self.currency:
            raise ValueError("Currency required")

    @property
    def amount(self) -> Decimal:
        return Decimal(self.cents) / 100

    def __str__(self) -> str:
        sign = "-" if self.cents < 0 else ""
        return f"{sign}${abs(self.amount):.2f}"
