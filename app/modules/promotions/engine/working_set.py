# app/modules/promotions/engine/working_set.py
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Sequence, Tuple

from .types import AffectedLine, CartLine, DiscountApplication, LineKey


@dataclass
class WorkingLine:
    """Copia privada de una línea del carrito con su cantidad aún sin descontar"""
    position: int
    line: CartLine
    remaining: int

    @property
    def key(self) -> LineKey:
        return self.line.key


class Evaluation(NamedTuple):
    application: DiscountApplication
    consumed: Dict[int, int]  # position -> unidades consumidas


def clone_cart(cart: Sequence[CartLine]) -> List[WorkingLine]:
    working = [WorkingLine(position=i, line=line, remaining=line.quantity) for i, line in enumerate(cart)]
    # Orden estable por (product_id, variant_id); None antes que cualquier variante
    working.sort(key=lambda w: (w.line.product_id, w.line.variant_id is not None, w.line.variant_id or 0, w.position))
    return working


def consume(lines: List[WorkingLine], consumed: Dict[int, int]) -> None:
    for working in lines:
        taken = consumed.get(working.position, 0)
        if taken:
            working.remaining -= taken


def affected_lines(lines: List[WorkingLine], taken: Dict[int, int]) -> Tuple[AffectedLine, ...]:
    """Agrupar unidades afectadas por (product_id, variant_id)"""
    per_key: Dict[LineKey, int] = {}
    for working in lines:
        qty = taken.get(working.position, 0)
        if qty:
            per_key[working.key] = per_key.get(working.key, 0) + qty
    return tuple(
        AffectedLine(product_id=key[0], variant_id=key[1], quantity_affected=qty)
        for key, qty in per_key.items()
    )
