# app/modules/promotions/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.config.database import get_db
from app.core.auth.dependencies import require_roles
from app.core.auth.schemas import Actor
from .engine.types import RuleType
from .service import PromotionService
from .schemas import (
    CartEvaluationRequest, FinalizeSaleRequest, DetectResponse, FinalizeResponse,
    PriceRuleRequest, PriceRuleResponse, PriceRuleDetailResponse,
    PriceRuleListResponse, PriceRuleStatsResponse,
    BundleCreateRequest, BundleUpdateRequest, BundleResponse
)

router = APIRouter(prefix="/promotions", tags=["Promotions"])

CASHIER_ROLES = ["vendedor", "administrador", "boss"]
ADMIN_ROLES = ["administrador", "boss"]

# ==================== MOTOR DE DESCUENTOS ====================

@router.post("/detect", response_model=DetectResponse)
async def detect_discounts(
    request: CartEvaluationRequest,
    current_user: Actor = Depends(require_roles(CASHIER_ROLES)),
    db: Session = Depends(get_db)
):
    """
    Vista previa de combos y reglas aplicables al carrito

    **Funcionalidad:**
    - Se llama en cada cambio del carrito
    - No incrementa contadores de uso ni escribe en base de datos
    - Combos primero, luego reglas por prioridad ascendente
    """
    service = PromotionService(db)
    return service.detect(request)


@router.post("/finalize", response_model=FinalizeResponse)
async def finalize_discounts(
    request: FinalizeSaleRequest,
    current_user: Actor = Depends(require_roles(CASHIER_ROLES)),
    db: Session = Depends(get_db)
):
    """
    Cierre de venta: recalcula los descuentos y registra los usos

    **Importante:**
    - Si una regla alcanzó su tope de usos en otra venta, se retira del
      resultado y se informa en `discount_reduced_at_commit`
    - El total a cobrar debe tomarse de este resultado, no de la vista previa
    """
    service = PromotionService(db)
    return service.finalize_sale(request)

# ==================== REGLAS DE PRECIO ====================

@router.get("/rules", response_model=PriceRuleListResponse)
async def list_price_rules(
    rule_type: Optional[RuleType] = Query(None, description="Filtrar por tipo de regla"),
    is_active: Optional[bool] = Query(None, description="Filtrar por estado activo"),
    search: Optional[str] = Query(None, description="Buscar en nombre o descripción"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: Actor = Depends(require_roles(CASHIER_ROLES)),
    db: Session = Depends(get_db)
):
    """Listar reglas de precio con filtros y paginación"""
    service = PromotionService(db)
    return service.list_rules(
        rule_type=rule_type.value if rule_type else None,
        is_active=is_active,
        search=search,
        page=page,
        limit=limit
    )


@router.get("/rules/stats", response_model=PriceRuleStatsResponse)
async def get_price_rule_stats(
    current_user: Actor = Depends(require_roles(ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """Reglas activas, vencidas y ahorro generado en el mes"""
    service = PromotionService(db)
    return service.get_rule_stats()


@router.get("/rules/{rule_id}", response_model=PriceRuleDetailResponse)
async def get_price_rule(
    rule_id: int,
    current_user: Actor = Depends(require_roles(CASHIER_ROLES)),
    db: Session = Depends(get_db)
):
    """Detalle de una regla con su estado calculado e historial de uso"""
    service = PromotionService(db)
    return service.get_rule(rule_id)


@router.post("/rules", response_model=PriceRuleResponse, status_code=201)
async def create_price_rule(
    rule_data: PriceRuleRequest,
    current_user: Actor = Depends(require_roles(ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """
    Crear regla de precio

    **Validaciones:**
    - buy_x_get_y: buy_quantity y get_quantity >= 1, solo porcentaje
    - quantity_discount: min_quantity >= 1
    - category_discount: debe aplicar a categorías
    - Porcentaje entre 0 y 100, start_date <= end_date
    """
    service = PromotionService(db)
    return service.create_rule(rule_data, current_user)


@router.put("/rules/{rule_id}", response_model=PriceRuleResponse)
async def update_price_rule(
    rule_id: int,
    rule_data: PriceRuleRequest,
    current_user: Actor = Depends(require_roles(ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """Reemplazar una regla (campos y alcance)"""
    service = PromotionService(db)
    return service.update_rule(rule_id, rule_data, current_user)


@router.delete("/rules/{rule_id}")
async def delete_price_rule(
    rule_id: int,
    current_user: Actor = Depends(require_roles(ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """Eliminar regla; si ya fue usada en ventas solo se desactiva"""
    service = PromotionService(db)
    return service.delete_rule(rule_id, current_user)

# ==================== COMBOS ====================

@router.get("/bundles", response_model=List[BundleResponse])
async def list_bundles(
    active_only: bool = Query(False, description="Solo combos activos"),
    current_user: Actor = Depends(require_roles(CASHIER_ROLES)),
    db: Session = Depends(get_db)
):
    service = PromotionService(db)
    return service.list_bundles(active_only)


@router.get("/bundles/{bundle_id}", response_model=BundleResponse)
async def get_bundle(
    bundle_id: int,
    current_user: Actor = Depends(require_roles(CASHIER_ROLES)),
    db: Session = Depends(get_db)
):
    service = PromotionService(db)
    return service.get_bundle(bundle_id)


@router.post("/bundles", response_model=BundleResponse, status_code=201)
async def create_bundle(
    bundle_data: BundleCreateRequest,
    current_user: Actor = Depends(require_roles(ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """
    Crear combo

    **Tipos de descuento:**
    - percentage: porcentaje sobre el precio de los componentes
    - fixed: monto fijo por juego completo
    - fixed_price: el juego completo cuesta este valor
    """
    service = PromotionService(db)
    return service.create_bundle(bundle_data, current_user)


@router.put("/bundles/{bundle_id}", response_model=BundleResponse)
async def update_bundle(
    bundle_id: int,
    update_data: BundleUpdateRequest,
    current_user: Actor = Depends(require_roles(ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """Actualización parcial; si se envían items reemplazan a los actuales"""
    service = PromotionService(db)
    return service.update_bundle(bundle_id, update_data, current_user)


@router.delete("/bundles/{bundle_id}")
async def delete_bundle(
    bundle_id: int,
    current_user: Actor = Depends(require_roles(ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """Eliminar combo (no permitido si ya se usó en ventas)"""
    service = PromotionService(db)
    return service.delete_bundle(bundle_id, current_user)
