# app/modules/promotions/service.py
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Dict, Any
from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.core.auth.schemas import Actor
from app.shared.database import models
from .engine import (
    Bundle, BundleComponent, CartLine, PriceRule, ResolutionPipeline,
    RuleCatalog, UsageLedger, rule_status,
)
from .engine.money import HUNDRED
from .repository import PromotionRepository
from .schemas import (
    BundleCreateRequest, BundleResponse, BundleUpdateRequest,
    CartEvaluationRequest, DetectResponse, FinalizeResponse, FinalizeSaleRequest,
    PriceRuleDetailResponse, PriceRuleListResponse, PriceRuleRequest,
    PriceRuleResponse, PriceRuleStatsResponse, PriceRuleUsageResponse,
)

logger = logging.getLogger(__name__)


# ==================== CONVERSIÓN FILA -> MOTOR ====================

def _rule_kind(row: models.PriceRule) -> Dict[str, Any]:
    kind: Dict[str, Any] = {"type": row.rule_type}
    if row.rule_type == "buy_x_get_y":
        kind.update(buy_quantity=row.buy_quantity, get_quantity=row.get_quantity)
    else:
        kind["min_quantity"] = row.min_quantity
    return kind

def _rule_scope(row: models.PriceRule) -> Dict[str, Any]:
    if row.applies_to == "product":
        return {
            "applies_to": "product",
            "product_ids": [t.product_id for t in row.targets if t.product_id is not None]
        }
    if row.applies_to == "category":
        return {
            "applies_to": "category",
            "category_ids": [t.category_id for t in row.targets if t.category_id is not None]
        }
    return {"applies_to": row.applies_to}

def to_engine_rule(row: models.PriceRule) -> Optional[PriceRule]:
    """
    Convertir una fila en regla del motor. Una fila que no valida se omite
    para que no bloquee el cobro de todo el carrito.
    """
    try:
        return PriceRule(
            rule_id=row.id,
            name=row.name,
            kind=_rule_kind(row),
            priority=row.priority or 0,
            discount_type=row.discount_type,
            discount_value=row.discount_value,
            scope=_rule_scope(row),
            start_date=row.start_date,
            end_date=row.end_date,
            max_uses=row.max_uses,
            total_used=row.used_count or 0,
            is_active=bool(row.is_active),
            description=row.description,
        )
    except ValidationError as e:
        logger.warning("Regla %s inválida, se omite: %s", row.id, e.errors())
        return None

def to_engine_bundle(row: models.ProductBundle) -> Optional[Bundle]:
    try:
        return Bundle(
            bundle_id=row.id,
            name=row.name,
            components=tuple(
                BundleComponent(
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    quantity=item.quantity_required,
                )
                for item in row.items
            ),
            discount_type=row.discount_type,
            discount_value=row.discount_value,
            start_date=row.start_date,
            end_date=row.end_date,
            is_active=bool(row.is_active),
            description=row.description,
        )
    except ValidationError as e:
        logger.warning("Combo %s inválido, se omite: %s", row.id, e.errors())
        return None


class PromotionService:
    """
    Servicio de promociones: vista previa y cierre de descuentos,
    administración de reglas de precio y combos
    """

    def __init__(self, db: Session):
        self.db = db
        self.repository = PromotionRepository(db)

    # ==================== MOTOR ====================

    def load_catalog(self) -> RuleCatalog:
        rules = [to_engine_rule(row) for row in self.repository.get_active_rules()]
        bundles = [to_engine_bundle(row) for row in self.repository.get_active_bundles()]
        return RuleCatalog(
            rules=[r for r in rules if r is not None],
            bundles=[b for b in bundles if b is not None],
        )

    def _check_cart_size(self, items: List[CartLine]) -> None:
        if len(items) > settings.promotions_max_cart_lines:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El carrito excede el máximo de {settings.promotions_max_cart_lines} líneas"
            )

    def detect(self, request: CartEvaluationRequest) -> DetectResponse:
        """
        Vista previa de descuentos. No escribe nada; se llama en cada
        cambio del carrito.
        """
        self._check_cart_size(request.items)
        now = request.evaluated_at or datetime.now()
        result = ResolutionPipeline(self.load_catalog()).detect(request.items, now)
        return DetectResponse(evaluated_at=now, result=result)

    def finalize(self, request: FinalizeSaleRequest) -> FinalizeResponse:
        """
        Recalcular y confirmar usos dentro de la transacción de quien llama.
        No hace commit: la venta y los contadores se confirman juntos.
        """
        self._check_cart_size(request.items)
        now = request.evaluated_at or datetime.now()
        catalog = self.load_catalog()
        preview = ResolutionPipeline(catalog).detect(request.items, now)
        outcome = UsageLedger(self.db).commit(preview, catalog, now, sale_id=request.sale_id)

        return FinalizeResponse(
            sale_id=request.sale_id,
            committed_at=now,
            result=outcome.result,
            discount_reduced_at_commit=outcome.signal,
        )

    def finalize_sale(self, request: FinalizeSaleRequest) -> FinalizeResponse:
        """Cierre como transacción propia (endpoint HTTP)"""
        try:
            response = self.finalize(request)
            self.db.commit()
            return response
        except Exception:
            self.db.rollback()
            raise

    # ==================== REGLAS DE PRECIO ====================

    def _rule_response(self, rule: models.PriceRule, now: datetime) -> PriceRuleResponse:
        response = PriceRuleResponse.model_validate(rule)
        engine_rule = to_engine_rule(rule)
        if engine_rule is not None:
            response.status = rule_status(engine_rule, now)
        return response

    def _get_rule_or_404(self, rule_id: int) -> models.PriceRule:
        rule = self.repository.get_rule_by_id(rule_id)
        if not rule:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Regla de precio no encontrada"
            )
        return rule

    @staticmethod
    def _rule_fields(rule_data: PriceRuleRequest) -> Dict[str, Any]:
        fields = rule_data.model_dump(exclude={"product_ids", "category_ids"})
        fields["rule_type"] = rule_data.rule_type.value
        fields["discount_type"] = rule_data.discount_type.value
        fields["applies_to"] = rule_data.applies_to.value
        return fields

    @staticmethod
    def _scope_ids(rule_data: PriceRuleRequest):
        # Solo se guardan los ids del alcance elegido
        product_ids = rule_data.product_ids if rule_data.applies_to.value == "product" else []
        category_ids = rule_data.category_ids if rule_data.applies_to.value == "category" else []
        return product_ids, category_ids

    def list_rules(
        self,
        rule_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> PriceRuleListResponse:
        page = max(1, page)
        limit = min(max(1, limit), 100)
        rules, total = self.repository.list_rules(
            rule_type=rule_type,
            is_active=is_active,
            search=search,
            offset=(page - 1) * limit,
            limit=limit
        )
        now = datetime.now()
        return PriceRuleListResponse(
            data=[self._rule_response(r, now) for r in rules],
            pagination={
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": (total + limit - 1) // limit
            }
        )

    def get_rule(self, rule_id: int) -> PriceRuleDetailResponse:
        rule = self._get_rule_or_404(rule_id)
        base = self._rule_response(rule, datetime.now())
        history = self.repository.get_rule_usage_history(
            rule_id, limit=settings.promotions_usage_history_limit
        )
        return PriceRuleDetailResponse(
            **base.model_dump(),
            usage_history=[PriceRuleUsageResponse.model_validate(u) for u in history]
        )

    def get_rule_stats(self) -> PriceRuleStatsResponse:
        now = datetime.now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return PriceRuleStatsResponse(**self.repository.get_rule_stats(now, month_start))

    def create_rule(self, rule_data: PriceRuleRequest, actor: Actor) -> PriceRuleResponse:
        product_ids, category_ids = self._scope_ids(rule_data)
        fields = self._rule_fields(rule_data)
        fields["created_by"] = actor.id
        rule = self.repository.create_rule(fields, product_ids, category_ids)

        logger.info(f"PRICE_RULE_CREATED rule_id={rule.id} by user_id={actor.id}")
        return self._rule_response(rule, datetime.now())

    def update_rule(self, rule_id: int, rule_data: PriceRuleRequest, actor: Actor) -> PriceRuleResponse:
        rule = self._get_rule_or_404(rule_id)

        if rule_data.max_uses is not None and rule_data.max_uses < rule.used_count:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"max_uses ({rule_data.max_uses}) no puede ser menor a los usos ya registrados ({rule.used_count})"
            )

        product_ids, category_ids = self._scope_ids(rule_data)
        rule = self.repository.replace_rule(rule, self._rule_fields(rule_data), product_ids, category_ids)

        logger.info(f"PRICE_RULE_UPDATED rule_id={rule.id} by user_id={actor.id}")
        return self._rule_response(rule, datetime.now())

    def delete_rule(self, rule_id: int, actor: Actor) -> Dict[str, Any]:
        """
        Las reglas con historial de uso se desactivan en lugar de borrarse
        """
        rule = self._get_rule_or_404(rule_id)

        if self.repository.count_rule_usage(rule_id) > 0:
            self.repository.deactivate_rule(rule)
            logger.info(f"PRICE_RULE_DEACTIVATED rule_id={rule_id} by user_id={actor.id}")
            return {
                "success": True,
                "rule_id": rule_id,
                "deleted": False,
                "message": "Regla desactivada (tiene historial de uso)"
            }

        self.repository.delete_rule(rule)
        logger.info(f"PRICE_RULE_DELETED rule_id={rule_id} by user_id={actor.id}")
        return {
            "success": True,
            "rule_id": rule_id,
            "deleted": True,
            "message": "Regla eliminada"
        }

    # ==================== COMBOS ====================

    def _get_bundle_or_404(self, bundle_id: int) -> models.ProductBundle:
        bundle = self.repository.get_bundle_by_id(bundle_id)
        if not bundle:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Combo no encontrado"
            )
        return bundle

    def list_bundles(self, active_only: bool = False) -> List[BundleResponse]:
        return [BundleResponse.model_validate(b) for b in self.repository.list_bundles(active_only)]

    def get_bundle(self, bundle_id: int) -> BundleResponse:
        return BundleResponse.model_validate(self._get_bundle_or_404(bundle_id))

    def create_bundle(self, bundle_data: BundleCreateRequest, actor: Actor) -> BundleResponse:
        fields = bundle_data.model_dump(exclude={"items"})
        fields["discount_type"] = bundle_data.discount_type.value
        fields["created_by"] = actor.id
        fields["is_active"] = True
        items = [item.model_dump() for item in bundle_data.items]

        bundle = self.repository.create_bundle(fields, items)

        logger.info(f"BUNDLE_CREATED bundle_id={bundle.id} by user_id={actor.id}")
        return BundleResponse.model_validate(bundle)

    def update_bundle(self, bundle_id: int, update_data: BundleUpdateRequest, actor: Actor) -> BundleResponse:
        bundle = self._get_bundle_or_404(bundle_id)

        fields = update_data.model_dump(exclude={"items"}, exclude_unset=True)
        if "discount_type" in fields:
            fields["discount_type"] = fields["discount_type"].value

        # Validar contra el estado resultante, no solo contra lo enviado
        discount_type = fields["discount_type"] if "discount_type" in fields else bundle.discount_type
        discount_value = fields["discount_value"] if "discount_value" in fields else bundle.discount_value
        if discount_type == "percentage" and Decimal(discount_value) > HUNDRED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El porcentaje de descuento debe estar entre 0 y 100"
            )
        start_date = fields.get("start_date", bundle.start_date)
        end_date = fields.get("end_date", bundle.end_date)
        if start_date and end_date and start_date > end_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="start_date no puede ser posterior a end_date"
            )

        items = None
        if update_data.items is not None:
            items = [item.model_dump() for item in update_data.items]

        bundle = self.repository.update_bundle(bundle, fields, items)

        logger.info(f"BUNDLE_UPDATED bundle_id={bundle_id} by user_id={actor.id}")
        return BundleResponse.model_validate(bundle)

    def delete_bundle(self, bundle_id: int, actor: Actor) -> Dict[str, Any]:
        bundle = self._get_bundle_or_404(bundle_id)

        if self.repository.count_bundle_sales(bundle_id) > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se puede eliminar un combo usado en ventas. Desactívelo en su lugar."
            )

        self.repository.delete_bundle(bundle)
        logger.info(f"BUNDLE_DELETED bundle_id={bundle_id} by user_id={actor.id}")
        return {
            "success": True,
            "bundle_id": bundle_id,
            "message": "Combo eliminado"
        }
