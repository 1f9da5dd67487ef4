# app/modules/promotions/engine/bundles.py
"""
Detección de combos: emparejamiento voraz del multiconjunto de componentes
contra el carrito, repetible por cada juego completo encontrado.
"""
from decimal import Decimal
from typing import Dict, List, Optional

from .money import HUNDRED, Money
from .types import Bundle, BundleComponent, CartLine, DiscountApplication, DiscountType, SourceKind
from .working_set import Evaluation, WorkingLine, affected_lines


def component_matches(line: CartLine, component: BundleComponent) -> bool:
    if line.product_id != component.product_id:
        return False
    # Un componente sin variante acepta cualquier variante del producto
    return component.variant_id is None or line.variant_id == component.variant_id


def _available(component: BundleComponent, lines: List[WorkingLine]) -> int:
    return sum(w.remaining for w in lines if component_matches(w.line, component))


def _plan(bundle: Bundle, lines: List[WorkingLine], sets: int) -> Optional[Dict[int, int]]:
    """Unidades a consumir para `sets` juegos, o None si no alcanzan"""
    remaining = {w.position: w.remaining for w in lines}
    taken: Dict[int, int] = {}
    # Primero los componentes con variante fija: son los más restrictivos
    ordered = sorted(bundle.components, key=lambda c: c.variant_id is None)
    for component in ordered:
        needed = component.quantity * sets
        for working in lines:
            if needed == 0:
                break
            if not component_matches(working.line, component):
                continue
            take = min(remaining[working.position], needed)
            if take:
                remaining[working.position] -= take
                taken[working.position] = taken.get(working.position, 0) + take
                needed -= take
        if needed:
            return None
    return taken


def match_bundle(bundle: Bundle, lines: List[WorkingLine]) -> Optional[Evaluation]:
    if not bundle.components:
        return None

    possible_sets = min(_available(c, lines) // c.quantity for c in bundle.components)
    taken = None
    # Componentes que comparten producto pueden sobreestimar los juegos posibles
    while possible_sets > 0:
        taken = _plan(bundle, lines, possible_sets)
        if taken is not None:
            break
        possible_sets -= 1
    if not possible_sets or not taken:
        return None

    nominal = sum(
        (w.line.unit_price * taken.get(w.position, 0) for w in lines),
        Decimal("0"),
    )
    if bundle.discount_type == DiscountType.percentage:
        raw = nominal * bundle.discount_value / HUNDRED
    elif bundle.discount_type == DiscountType.fixed_price:
        raw = nominal - bundle.discount_value * possible_sets
    else:
        raw = bundle.discount_value * possible_sets
    raw = max(Decimal("0"), min(raw, nominal))

    amount = Money.of(raw)
    if not amount:
        return None

    application = DiscountApplication(
        source_id=bundle.bundle_id,
        source_kind=SourceKind.bundle,
        description=f"Combo {bundle.name} x{possible_sets}",
        affected_lines=affected_lines(lines, taken),
        discount_amount=amount.amount,
    )
    return Evaluation(application=application, consumed=taken)
