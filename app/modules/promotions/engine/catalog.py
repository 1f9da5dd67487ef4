# app/modules/promotions/engine/catalog.py
"""
Vista en memoria de las reglas y combos vigentes en un instante dado.

El estado de una regla se deriva siempre de sus campos y del reloj; nunca se
guarda por separado.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .money import HUNDRED
from .types import (
    Bundle, BuyXGetY, CategoryDiscount, CategoryScope, DiscountType,
    PriceRule, ProductScope, RuleStatus,
)

logger = logging.getLogger(__name__)


def rule_status(rule: PriceRule, now: datetime) -> RuleStatus:
    if not rule.is_active:
        return RuleStatus.disabled
    if rule.end_date is not None and now > rule.end_date:
        return RuleStatus.expired
    if rule.max_uses is not None and rule.total_used >= rule.max_uses:
        return RuleStatus.exhausted
    if now < rule.start_date:
        return RuleStatus.scheduled
    return RuleStatus.active


def bundle_is_active(bundle: Bundle, now: datetime) -> bool:
    if not bundle.is_active:
        return False
    if bundle.start_date is not None and now < bundle.start_date:
        return False
    if bundle.end_date is not None and now > bundle.end_date:
        return False
    return True


def rule_defect(rule: PriceRule) -> Optional[str]:
    """
    Motivo por el que una regla no puede evaluarse, o None si es válida.
    Las reglas defectuosas se tratan como inaplicables, nunca como error.
    """
    if rule.discount_type == DiscountType.fixed_price:
        return "fixed_price solo aplica a combos"
    if rule.discount_type == DiscountType.percentage and rule.discount_value > HUNDRED:
        return "porcentaje fuera de [0, 100]"
    if isinstance(rule.kind, BuyXGetY) and rule.discount_type != DiscountType.percentage:
        return "buy_x_get_y solo admite descuento porcentual"
    if isinstance(rule.kind, CategoryDiscount) and not isinstance(rule.scope, CategoryScope):
        return "category_discount debe aplicar a categorías"
    if rule.end_date is not None and rule.start_date > rule.end_date:
        return "start_date posterior a end_date"
    if rule.max_uses is not None and rule.total_used > rule.max_uses:
        return "total_used supera max_uses"
    if isinstance(rule.scope, ProductScope) and not rule.scope.product_ids:
        return "alcance por producto sin productos"
    if isinstance(rule.scope, CategoryScope) and not rule.scope.category_ids:
        return "alcance por categoría sin categorías"
    return None


def bundle_defect(bundle: Bundle) -> Optional[str]:
    if not bundle.components:
        return "combo sin componentes"
    if bundle.discount_type == DiscountType.percentage and bundle.discount_value > HUNDRED:
        return "porcentaje fuera de [0, 100]"
    if bundle.start_date and bundle.end_date and bundle.start_date > bundle.end_date:
        return "start_date posterior a end_date"
    return None


class RuleCatalog:
    """
    Catálogo de reglas y combos cargados por la capa de persistencia
    """

    def __init__(self, rules: Iterable[PriceRule] = (), bundles: Iterable[Bundle] = ()):
        self._rules: Dict[int, PriceRule] = {r.rule_id: r for r in rules}
        self._bundles: Dict[int, Bundle] = {b.bundle_id: b for b in bundles}

    def rule(self, rule_id: int) -> Optional[PriceRule]:
        return self._rules.get(rule_id)

    def bundle(self, bundle_id: int) -> Optional[Bundle]:
        return self._bundles.get(bundle_id)

    def status_of(self, rule_id: int, now: datetime) -> Optional[RuleStatus]:
        rule = self._rules.get(rule_id)
        return rule_status(rule, now) if rule else None

    def active_rules_at(self, now: datetime) -> List[PriceRule]:
        """Reglas activas ordenadas por (priority, rule_id) ascendente"""
        active = []
        for rule in self._rules.values():
            if rule_status(rule, now) != RuleStatus.active:
                continue
            defect = rule_defect(rule)
            if defect:
                logger.warning("Regla %s omitida: %s", rule.rule_id, defect)
                continue
            active.append(rule)
        return sorted(active, key=lambda r: (r.priority, r.rule_id))

    def active_bundles_at(self, now: datetime) -> List[Bundle]:
        """Combos vigentes ordenados por bundle_id ascendente"""
        active = []
        for bundle in self._bundles.values():
            if not bundle_is_active(bundle, now):
                continue
            defect = bundle_defect(bundle)
            if defect:
                logger.warning("Combo %s omitido: %s", bundle.bundle_id, defect)
                continue
            active.append(bundle)
        return sorted(active, key=lambda b: b.bundle_id)
