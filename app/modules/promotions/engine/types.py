# app/modules/promotions/engine/types.py
"""
Tipos del motor de promociones.

Las reglas se modelan como una unión etiquetada (``kind``) y el alcance como
una variante cerrada (``scope``), de modo que cada evaluador recibe
exactamente los campos que necesita.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, FrozenSet, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .money import Money

LineKey = Tuple[int, Optional[int]]

# ==================== ENUMS ====================

class RuleType(str, Enum):
    buy_x_get_y = "buy_x_get_y"
    quantity_discount = "quantity_discount"
    time_based = "time_based"
    category_discount = "category_discount"

class DiscountType(str, Enum):
    percentage = "percentage"
    fixed = "fixed"
    fixed_price = "fixed_price"  # solo combos

class AppliesTo(str, Enum):
    all = "all"
    product = "product"
    category = "category"

class RuleStatus(str, Enum):
    active = "active"
    scheduled = "scheduled"
    expired = "expired"
    disabled = "disabled"
    exhausted = "exhausted"

class SourceKind(str, Enum):
    rule = "rule"
    bundle = "bundle"

# ==================== CLASE BASE ====================

class EngineModel(BaseModel):
    model_config = ConfigDict(frozen=True)

# ==================== CARRITO ====================

class CartLine(EngineModel):
    product_id: int
    variant_id: Optional[int] = None
    category_id: Optional[int] = None
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)

    @property
    def key(self) -> LineKey:
        return (self.product_id, self.variant_id)

# ==================== ALCANCE ====================

class AllScope(EngineModel):
    applies_to: Literal["all"] = "all"

class ProductScope(EngineModel):
    applies_to: Literal["product"] = "product"
    product_ids: FrozenSet[int] = frozenset()

class CategoryScope(EngineModel):
    applies_to: Literal["category"] = "category"
    category_ids: FrozenSet[int] = frozenset()

Scope = Annotated[
    Union[AllScope, ProductScope, CategoryScope],
    Field(discriminator="applies_to"),
]

# ==================== TIPOS DE REGLA ====================

class BuyXGetY(EngineModel):
    type: Literal["buy_x_get_y"] = "buy_x_get_y"
    buy_quantity: int = Field(..., ge=1)
    get_quantity: int = Field(..., ge=1)

class QuantityDiscount(EngineModel):
    type: Literal["quantity_discount"] = "quantity_discount"
    min_quantity: int = Field(..., ge=1)

class TimeBased(EngineModel):
    type: Literal["time_based"] = "time_based"
    min_quantity: Optional[int] = Field(None, ge=1)

class CategoryDiscount(EngineModel):
    type: Literal["category_discount"] = "category_discount"
    min_quantity: Optional[int] = Field(None, ge=1)

RuleKind = Annotated[
    Union[BuyXGetY, QuantityDiscount, TimeBased, CategoryDiscount],
    Field(discriminator="type"),
]

class PriceRule(EngineModel):
    rule_id: int
    name: str
    kind: RuleKind
    priority: int = 0
    discount_type: DiscountType = DiscountType.percentage
    discount_value: Decimal = Field(..., ge=0)
    scope: Scope = Field(default_factory=AllScope)
    start_date: datetime
    end_date: Optional[datetime] = None
    max_uses: Optional[int] = Field(None, ge=0)
    total_used: int = Field(0, ge=0)
    is_active: bool = True
    description: Optional[str] = None

    @property
    def rule_type(self) -> RuleType:
        return RuleType(self.kind.type)

# ==================== COMBOS ====================

class BundleComponent(EngineModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(..., ge=1)

class Bundle(EngineModel):
    bundle_id: int
    name: str
    components: Tuple[BundleComponent, ...]
    discount_type: DiscountType = DiscountType.percentage
    discount_value: Decimal = Field(..., ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool = True
    description: Optional[str] = None

# ==================== RESULTADO ====================

class AffectedLine(EngineModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity_affected: int

class DiscountApplication(EngineModel):
    source_id: int
    source_kind: SourceKind
    description: str
    affected_lines: Tuple[AffectedLine, ...]
    discount_amount: Decimal

class DiscountResult(EngineModel):
    applications: Tuple[DiscountApplication, ...] = ()
    total_discount: Decimal = Decimal("0.00")

    def without(self, dropped: List[DiscountApplication]) -> "DiscountResult":
        """Resultado sin las aplicaciones indicadas y con el total recalculado"""
        kept = tuple(a for a in self.applications if a not in dropped)
        total = Money.total(Money.of(a.discount_amount) for a in kept)
        return DiscountResult(applications=kept, total_discount=total.amount)

class DiscountReducedAtCommit(EngineModel):
    """Señal (no error): alguna promoción se agotó entre la vista previa y el cierre"""
    preview_total: Decimal
    committed_total: Decimal
    dropped_source_ids: Tuple[int, ...]
    message: str = "Una promoción fue redimida por completo en otra transacción"
