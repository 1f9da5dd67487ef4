"""
Motor de resolución de promociones y descuentos.

- money.py: aritmética de punto fijo
- catalog.py: reglas y combos vigentes en un instante
- matcher.py: alcance de una regla sobre una línea
- evaluators.py: un algoritmo por tipo de regla
- bundles.py: detección de combos
- pipeline.py: orden de evaluación y consumo de unidades
- ledger.py: registro atómico de usos al cerrar la venta
"""

from .catalog import RuleCatalog, rule_status
from .ledger import CommitOutcome, UsageLedger
from .money import Money, round_half_up
from .pipeline import ResolutionPipeline, detect
from .types import (
    AffectedLine, AllScope, Bundle, BundleComponent, BuyXGetY, CartLine,
    CategoryDiscount, CategoryScope, DiscountApplication, DiscountReducedAtCommit,
    DiscountResult, DiscountType, PriceRule, ProductScope, QuantityDiscount,
    RuleStatus, RuleType, SourceKind, TimeBased,
)

__all__ = [
    "RuleCatalog",
    "rule_status",
    "UsageLedger",
    "CommitOutcome",
    "Money",
    "round_half_up",
    "ResolutionPipeline",
    "detect",
    "AffectedLine",
    "AllScope",
    "Bundle",
    "BundleComponent",
    "BuyXGetY",
    "CartLine",
    "CategoryDiscount",
    "CategoryScope",
    "DiscountApplication",
    "DiscountReducedAtCommit",
    "DiscountResult",
    "DiscountType",
    "PriceRule",
    "ProductScope",
    "QuantityDiscount",
    "RuleStatus",
    "RuleType",
    "SourceKind",
    "TimeBased",
]
