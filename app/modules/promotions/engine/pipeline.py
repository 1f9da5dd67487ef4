# app/modules/promotions/engine/pipeline.py
"""
Resolución de promociones para un carrito.

Orden: combos (bundle_id ascendente) y luego reglas por prioridad
ascendente. Cada fuente solo ve la cantidad que dejaron las anteriores, así
ninguna unidad recibe descuento de dos fuentes.
"""
from datetime import datetime
from typing import List, Sequence

from .bundles import match_bundle
from .catalog import RuleCatalog
from .evaluators import evaluate_rule
from .money import Money
from .types import CartLine, DiscountApplication, DiscountResult
from .working_set import clone_cart, consume


class ResolutionPipeline:

    def __init__(self, catalog: RuleCatalog):
        self.catalog = catalog

    def detect(self, cart: Sequence[CartLine], now: datetime) -> DiscountResult:
        """Vista previa sin efectos secundarios"""
        if not cart:
            return DiscountResult()

        lines = clone_cart(cart)
        applications: List[DiscountApplication] = []

        for bundle in self.catalog.active_bundles_at(now):
            evaluation = match_bundle(bundle, lines)
            if evaluation is None:
                continue
            consume(lines, evaluation.consumed)
            applications.append(evaluation.application)

        for rule in self.catalog.active_rules_at(now):
            evaluation = evaluate_rule(rule, lines, now)
            if evaluation is None:
                continue
            consume(lines, evaluation.consumed)
            applications.append(evaluation.application)

        total = Money.total(Money.of(a.discount_amount) for a in applications)
        return DiscountResult(applications=tuple(applications), total_discount=total.amount)


def detect(cart: Sequence[CartLine], catalog: RuleCatalog, now: datetime) -> DiscountResult:
    return ResolutionPipeline(catalog).detect(cart, now)
