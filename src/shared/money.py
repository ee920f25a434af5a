"""Money value object for monetary amounts with currency.

Amounts are exact decimals scaled to four fractional digits, rounded half-up
on construction. Every operation returns a new value; operands must share a
currency.
"""

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.errors import CurrencyMismatchError, NegativeResultError, ValidationError

SCALE = Decimal("0.0001")

VALID_CURRENCIES = frozenset(
    {
        "USD",
        "EUR",
        "GBP",
        "JPY",
        "CAD",
        "AUD",
        "CHF",
        "CNY",
        "INR",
        "MXN",
        "BRL",
        "KRW",
        "SGD",
        "HKD",
        "NOK",
        "SEK",
        "DKK",
        "NZD",
        "ZAR",
        "TWD",
        "EGP",
        "SAR",
        "AED",
    }
)


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 keep their printed value
    return Decimal(str(value))


class Money(BaseModel):
    """Value object representing a non-negative monetary amount with currency."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)

    @field_validator("amount", mode="after")
    @classmethod
    def _quantize(cls, value: Decimal) -> Decimal:
        return value.quantize(SCALE, rounding=ROUND_HALF_UP)

    @field_validator("currency", mode="after")
    @classmethod
    def _currency_must_be_valid_iso_4217(cls, value: str) -> str:
        value = value.upper()
        if value not in VALID_CURRENCIES:
            raise ValueError(f"Unsupported currency: {value}")
        return value

    @classmethod
    def of(cls, amount, currency: str) -> "Money":
        return cls(amount=_to_decimal(amount), currency=currency)

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(amount=Decimal(0), currency=currency)

    @classmethod
    def total(cls, values, currency: str) -> "Money":
        """Sum an iterable of Money values; an empty iterable sums to zero."""
        result = cls.zero(currency)
        for value in values:
            result = result.add(value)
        return result

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def add(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def subtract(self, other: "Money") -> "Money":
        self._check_currency(other)
        result = self.amount - other.amount
        if result < 0:
            raise NegativeResultError(
                {"amount": [f"Subtracting {other.amount} from {self.amount} {self.currency} is negative"]}
            )
        return Money(amount=result, currency=self.currency)

    def multiply(self, factor) -> "Money":
        factor = _to_decimal(factor)
        if factor < 0:
            raise ValidationError({"factor": [f"Factor must be non-negative, got {factor}"]})
        return Money(amount=self.amount * factor, currency=self.currency)

    def percentage(self, pct) -> "Money":
        return self.multiply(_to_decimal(pct) / Decimal(100))

    def compare(self, other: "Money") -> int:
        self._check_currency(other)
        if self.amount < other.amount:
            return -1
        if self.amount > other.amount:
            return 1
        return 0

    def min(self, other: "Money") -> "Money":
        return self if self.compare(other) <= 0 else other

    def is_zero(self) -> bool:
        return self.amount == 0

    def __lt__(self, other: "Money") -> bool:
        return self.compare(other) < 0

    def __le__(self, other: "Money") -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: "Money") -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: "Money") -> bool:
        return self.compare(other) >= 0

    def display(self) -> str:
        return f"{self.amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)} {self.currency}"

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"
