# app/modules/promotions/engine/evaluators.py
"""
Un algoritmo por familia de regla.

Cada evaluador recibe la cantidad restante (no consumida por promociones de
mayor prioridad) y devuelve a lo sumo una aplicación junto con las unidades
que consume. No modifica las líneas: el pipeline descuenta lo consumido.
"""
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from .matcher import matches
from .money import HUNDRED, Money
from .types import (
    BuyXGetY, CategoryDiscount, CategoryScope, DiscountApplication,
    DiscountType, PriceRule, QuantityDiscount, SourceKind, TimeBased,
)
from .working_set import Evaluation, WorkingLine, affected_lines

Evaluator = Callable[[PriceRule, List[WorkingLine], datetime], Optional[Evaluation]]


def _matching(rule: PriceRule, lines: List[WorkingLine]) -> List[WorkingLine]:
    return [w for w in lines if w.remaining > 0 and matches(w.line, rule)]


def _format_value(rule: PriceRule) -> str:
    value = rule.discount_value.normalize()
    if rule.discount_type == DiscountType.percentage:
        return f"{value:f}%"
    return f"${value:f}"


def _emit(rule: PriceRule, lines: List[WorkingLine], affected: Dict[int, int],
          consumed: Dict[int, int], raw: Decimal, description: str) -> Optional[Evaluation]:
    amount = Money.of(raw)
    if not amount:
        return None
    application = DiscountApplication(
        source_id=rule.rule_id,
        source_kind=SourceKind.rule,
        description=description,
        affected_lines=affected_lines(lines, affected),
        discount_amount=amount.amount,
    )
    return Evaluation(application=application, consumed=consumed)


def _threshold_discount(rule: PriceRule, lines: List[WorkingLine], min_quantity: int) -> Optional[Evaluation]:
    """
    Al cruzar el umbral el descuento cubre toda la cantidad en alcance,
    no solo cada múltiplo del mínimo.
    """
    matching = _matching(rule, lines)
    total_qty = sum(w.remaining for w in matching)
    if total_qty == 0 or total_qty < min_quantity:
        return None

    nominal = sum((w.line.unit_price * w.remaining for w in matching), Decimal("0"))
    if rule.discount_type == DiscountType.percentage:
        raw = nominal * rule.discount_value / HUNDRED
    else:
        raw = rule.discount_value * total_qty
    # Nunca más que el valor de las unidades
    raw = min(raw, nominal)

    taken = {w.position: w.remaining for w in matching}
    description = f"{rule.name}: {_format_value(rule)} en {total_qty} unidades"
    return _emit(rule, lines, taken, dict(taken), raw, description)


def evaluate_quantity_discount(rule: PriceRule, lines: List[WorkingLine], now: datetime) -> Optional[Evaluation]:
    kind = rule.kind
    if not isinstance(kind, QuantityDiscount):
        return None
    return _threshold_discount(rule, lines, kind.min_quantity)


def evaluate_buy_x_get_y(rule: PriceRule, lines: List[WorkingLine], now: datetime) -> Optional[Evaluation]:
    kind = rule.kind
    if not isinstance(kind, BuyXGetY) or rule.discount_type != DiscountType.percentage:
        return None

    matching = _matching(rule, lines)
    total_qty = sum(w.remaining for w in matching)
    set_size = kind.buy_quantity + kind.get_quantity
    repetitions = total_qty // set_size
    if repetitions == 0:
        return None

    # Las unidades "gratis" son las más baratas; las de "compra" salen del extremo caro
    by_price = sorted(matching, key=lambda w: (w.line.unit_price, w.position))
    free_left = repetitions * kind.get_quantity
    free: Dict[int, int] = {}
    for working in by_price:
        if free_left == 0:
            break
        take = min(working.remaining, free_left)
        free[working.position] = take
        free_left -= take

    buy_left = repetitions * kind.buy_quantity
    consumed = dict(free)
    for working in reversed(by_price):
        if buy_left == 0:
            break
        available = working.remaining - free.get(working.position, 0)
        take = min(available, buy_left)
        if take:
            consumed[working.position] = consumed.get(working.position, 0) + take
            buy_left -= take

    free_value = sum((w.line.unit_price * free.get(w.position, 0) for w in matching), Decimal("0"))
    raw = free_value * rule.discount_value / HUNDRED
    description = (
        f"{rule.name}: compra {kind.buy_quantity} lleva {kind.get_quantity} "
        f"({_format_value(rule)}) x{repetitions}"
    )
    return _emit(rule, lines, free, consumed, raw, description)


def evaluate_time_based(rule: PriceRule, lines: List[WorkingLine], now: datetime) -> Optional[Evaluation]:
    kind = rule.kind
    if not isinstance(kind, TimeBased):
        return None
    # La ventana también se verifica aquí, fuera del catálogo
    if now < rule.start_date or (rule.end_date is not None and now > rule.end_date):
        return None
    return _threshold_discount(rule, lines, kind.min_quantity or 1)


def evaluate_category_discount(rule: PriceRule, lines: List[WorkingLine], now: datetime) -> Optional[Evaluation]:
    kind = rule.kind
    if not isinstance(kind, CategoryDiscount) or not isinstance(rule.scope, CategoryScope):
        return None
    return _threshold_discount(rule, lines, kind.min_quantity or 1)


EVALUATORS: Dict[str, Evaluator] = {
    "buy_x_get_y": evaluate_buy_x_get_y,
    "quantity_discount": evaluate_quantity_discount,
    "time_based": evaluate_time_based,
    "category_discount": evaluate_category_discount,
}


def evaluate_rule(rule: PriceRule, lines: List[WorkingLine], now: datetime) -> Optional[Evaluation]:
    evaluator = EVALUATORS.get(rule.kind.type)
    if evaluator is None:
        return None
    return evaluator(rule, lines, now)
