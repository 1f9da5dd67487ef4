from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import List, Optional, Dict, Any
from datetime import datetime
from decimal import Decimal
from enum import Enum

from .engine.types import (
    AppliesTo, CartLine, DiscountResult, DiscountReducedAtCommit,
    DiscountType, RuleStatus, RuleType,
)

# ==================== ENUMS ====================

class RuleDiscountType(str, Enum):
    percentage = "percentage"
    fixed = "fixed"

# ==================== CLASE BASE PARA RESPUESTAS (Pydantic v2) ====================

class PromotionsBaseModel(BaseModel):
    """
    Clase base para los esquemas de respuesta del módulo de promociones
    """
    model_config = ConfigDict(from_attributes=True)

# ==================== FECHAS ====================

def to_naive_local(value: Optional[datetime]) -> Optional[datetime]:
    """
    Las columnas de fecha no guardan zona horaria (hora local del servidor).
    Un instante con zona se convierte a esa misma convención.
    """
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value

# ==================== MOTOR: REQUEST ====================

class CartEvaluationRequest(BaseModel):
    items: List[CartLine] = Field(default_factory=list, description="Líneas del carrito")
    evaluated_at: Optional[datetime] = Field(None, description="Instante de evaluación (por defecto ahora)")

    @field_validator('evaluated_at')
    @classmethod
    def normalize_evaluated_at(cls, v: Optional[datetime]):
        return to_naive_local(v)

class FinalizeSaleRequest(CartEvaluationRequest):
    sale_id: int = Field(..., gt=0, description="Venta a la que se imputan los descuentos")

# ==================== MOTOR: RESPONSE ====================

class DetectResponse(PromotionsBaseModel):
    success: bool = True
    evaluated_at: datetime
    result: DiscountResult

class FinalizeResponse(PromotionsBaseModel):
    success: bool = True
    sale_id: int
    committed_at: datetime
    result: DiscountResult
    discount_reduced_at_commit: Optional[DiscountReducedAtCommit] = None

# ==================== REGLAS: REQUEST ====================

class PriceRuleRequest(BaseModel):
    """
    Alta o reemplazo completo de una regla. Aquí se rechazan los errores de
    configuración; el motor nunca los ve.
    """
    name: str = Field(..., min_length=1, max_length=200)
    rule_type: RuleType
    description: Optional[str] = None
    is_active: bool = True
    priority: int = Field(0, description="Menor = se evalúa antes")
    start_date: datetime
    end_date: Optional[datetime] = None
    min_quantity: Optional[int] = Field(None, ge=1)
    buy_quantity: Optional[int] = Field(None, ge=1)
    get_quantity: Optional[int] = Field(None, ge=1)
    discount_type: RuleDiscountType = RuleDiscountType.percentage
    discount_value: Decimal = Field(..., gt=0)
    max_uses: Optional[int] = Field(None, ge=1)
    applies_to: AppliesTo = AppliesTo.all
    product_ids: List[int] = Field(default_factory=list)
    category_ids: List[int] = Field(default_factory=list)

    @field_validator('product_ids', 'category_ids')
    @classmethod
    def dedupe_ids(cls, v: List[int]):
        return sorted(set(v))

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]):
        return to_naive_local(v)

    @model_validator(mode='after')
    def validate_rule_shape(self):
        if self.discount_type == RuleDiscountType.percentage and self.discount_value > 100:
            raise ValueError('El porcentaje de descuento debe estar entre 0 y 100')
        if self.end_date is not None and self.start_date > self.end_date:
            raise ValueError('start_date no puede ser posterior a end_date')

        if self.rule_type == RuleType.buy_x_get_y:
            if not self.buy_quantity or not self.get_quantity:
                raise ValueError('buy_x_get_y requiere buy_quantity y get_quantity')
            if self.discount_type != RuleDiscountType.percentage:
                raise ValueError('buy_x_get_y solo admite descuento porcentual')
        elif self.rule_type == RuleType.quantity_discount:
            if not self.min_quantity:
                raise ValueError('quantity_discount requiere min_quantity')
        elif self.rule_type == RuleType.category_discount:
            if self.applies_to != AppliesTo.category:
                raise ValueError('category_discount debe aplicar a categorías')

        if self.applies_to == AppliesTo.product and not self.product_ids:
            raise ValueError('Debe indicar al menos un producto')
        if self.applies_to == AppliesTo.category and not self.category_ids:
            raise ValueError('Debe indicar al menos una categoría')
        return self

# ==================== REGLAS: RESPONSE ====================

class PriceRuleTargetResponse(PromotionsBaseModel):
    product_id: Optional[int]
    category_id: Optional[int]

class PriceRuleUsageResponse(PromotionsBaseModel):
    id: int
    sale_id: int
    discount_applied: Decimal
    applied_at: Optional[datetime]

class PriceRuleResponse(PromotionsBaseModel):
    id: int
    name: str
    rule_type: str
    description: Optional[str]
    is_active: bool
    priority: int
    start_date: datetime
    end_date: Optional[datetime]
    min_quantity: Optional[int]
    buy_quantity: Optional[int]
    get_quantity: Optional[int]
    discount_type: str
    discount_value: Decimal
    max_uses: Optional[int]
    used_count: int
    applies_to: str
    targets: List[PriceRuleTargetResponse]

    # Calculado al momento de la consulta
    status: Optional[RuleStatus] = None

class PriceRuleDetailResponse(PriceRuleResponse):
    usage_history: List[PriceRuleUsageResponse] = Field(default_factory=list)

class PriceRuleListResponse(PromotionsBaseModel):
    data: List[PriceRuleResponse]
    pagination: Dict[str, Any]

class PriceRuleStatsResponse(PromotionsBaseModel):
    active_count: int
    total_rules: int
    expired_count: int
    savings_this_month: Decimal

# ==================== COMBOS: REQUEST ====================

class BundleItemRequest(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity_required: int = Field(1, ge=1, description="Unidades requeridas por juego")

class BundleCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    items: List[BundleItemRequest] = Field(..., min_length=1)

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]):
        return to_naive_local(v)

    @model_validator(mode='after')
    def validate_bundle(self):
        if self.discount_type == DiscountType.percentage and self.discount_value > 100:
            raise ValueError('El porcentaje de descuento debe estar entre 0 y 100')
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError('start_date no puede ser posterior a end_date')
        return self

class BundleUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    is_active: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    items: Optional[List[BundleItemRequest]] = Field(None, min_length=1)

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]):
        return to_naive_local(v)

    @model_validator(mode='after')
    def reject_null_required_fields(self):
        # Omitir un campo lo deja igual; enviarlo en null no está permitido
        for field in ('name', 'discount_type', 'discount_value', 'is_active'):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f'{field} no puede ser null')
        return self

# ==================== COMBOS: RESPONSE ====================

class BundleItemResponse(PromotionsBaseModel):
    id: int
    product_id: int
    variant_id: Optional[int]
    quantity_required: int

class BundleResponse(PromotionsBaseModel):
    id: int
    name: str
    description: Optional[str]
    discount_type: str
    discount_value: Decimal
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    is_active: bool
    items: List[BundleItemResponse]
