# app/modules/promotions/engine/money.py
"""
Aritmética monetaria de punto fijo.

Internamente el dinero se guarda como un entero de centavos; la API pública
recibe y devuelve Decimal. El redondeo (half-up, 2 decimales) ocurre una sola
vez, al emitir cada aplicación de descuento.
"""
from decimal import Decimal, ROUND_HALF_UP
from functools import total_ordering
from typing import Iterable, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Number) -> Decimal:
    """Convertir a Decimal sin pasar por la representación binaria del float"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_half_up(value: Number, places: int = 2) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


@total_ordering
class Money:
    """Monto en centavos enteros"""

    __slots__ = ("_cents",)

    def __init__(self, cents: int = 0):
        self._cents = int(cents)

    @classmethod
    def of(cls, value: Number) -> "Money":
        """Redondear un valor decimal exacto a centavos (half-up)"""
        return cls(int(round_half_up(value) * 100))

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def total(cls, amounts: Iterable["Money"]) -> "Money":
        cents = 0
        for amount in amounts:
            cents += amount.cents
        return cls(cents)

    @property
    def cents(self) -> int:
        return self._cents

    @property
    def amount(self) -> Decimal:
        return Decimal(self._cents).scaleb(-2)

    def add(self, other: "Money") -> "Money":
        return Money(self._cents + other.cents)

    def subtract(self, other: "Money") -> "Money":
        return Money(self._cents - other.cents)

    def multiply(self, scalar: Number) -> "Money":
        return Money.of(self.amount * to_decimal(scalar))

    def percentage_of(self, percent: Number) -> Decimal:
        # Sin redondear: quien emite el descuento redondea una sola vez
        return self.amount * to_decimal(percent) / HUNDRED

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        return self.subtract(other)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self._cents == other.cents

    def __lt__(self, other: "Money") -> bool:
        return self._cents < other.cents

    def __hash__(self) -> int:
        return hash(self._cents)

    def __bool__(self) -> bool:
        return self._cents != 0

    def __repr__(self) -> str:
        return f"Money({self.amount})"
