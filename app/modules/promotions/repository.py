# app/modules/promotions/repository.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Dict, Any, Tuple
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import and_, func, or_, desc, case

from app.shared.database.models import (
    PriceRule, PriceRuleTarget, PriceRuleUsage,
    ProductBundle, BundleItem, SaleBundle
)

class PromotionRepository:
    """
    Repositorio para reglas de precio, combos y su historial de uso
    """

    def __init__(self, db: Session):
        self.db = db

    # ==================== CARGA PARA EL MOTOR ====================

    def get_active_rules(self) -> List[PriceRule]:
        """Reglas con is_active; el motor decide el resto del estado"""
        return self.db.query(PriceRule).options(
            selectinload(PriceRule.targets)
        ).filter(
            PriceRule.is_active == True
        ).all()

    def get_active_bundles(self) -> List[ProductBundle]:
        return self.db.query(ProductBundle).options(
            selectinload(ProductBundle.items)
        ).filter(
            ProductBundle.is_active == True
        ).all()

    # ==================== REGLAS ====================

    def list_rules(
        self,
        rule_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20
    ) -> Tuple[List[PriceRule], int]:
        """
        Listar reglas con filtros y paginación
        """
        query = self.db.query(PriceRule)

        if rule_type:
            query = query.filter(PriceRule.rule_type == rule_type)
        if is_active is not None:
            query = query.filter(PriceRule.is_active == is_active)
        if search:
            query = query.filter(
                or_(
                    PriceRule.name.ilike(f'%{search}%'),
                    PriceRule.description.ilike(f'%{search}%')
                )
            )

        total = query.count()
        rules = query.options(
            selectinload(PriceRule.targets)
        ).order_by(
            PriceRule.priority.asc(), PriceRule.id.asc()
        ).offset(offset).limit(limit).all()

        return rules, total

    def get_rule_by_id(self, rule_id: int) -> Optional[PriceRule]:
        return self.db.query(PriceRule).options(
            selectinload(PriceRule.targets)
        ).filter(PriceRule.id == rule_id).first()

    def create_rule(self, rule_data: Dict[str, Any], product_ids: List[int], category_ids: List[int]) -> PriceRule:
        rule = PriceRule(**rule_data)
        rule.targets = self._build_targets(product_ids, category_ids)
        self.db.add(rule)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def replace_rule(
        self,
        rule: PriceRule,
        rule_data: Dict[str, Any],
        product_ids: List[int],
        category_ids: List[int]
    ) -> PriceRule:
        """Reemplazo completo: campos y alcance"""
        for key, value in rule_data.items():
            setattr(rule, key, value)
        rule.targets = self._build_targets(product_ids, category_ids)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def deactivate_rule(self, rule: PriceRule) -> PriceRule:
        rule.is_active = False
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def delete_rule(self, rule: PriceRule) -> None:
        self.db.delete(rule)
        self.db.commit()

    def count_rule_usage(self, rule_id: int) -> int:
        return self.db.query(func.count(PriceRuleUsage.id)).filter(
            PriceRuleUsage.rule_id == rule_id
        ).scalar() or 0

    def get_rule_usage_history(self, rule_id: int, limit: int = 50) -> List[PriceRuleUsage]:
        return self.db.query(PriceRuleUsage).filter(
            PriceRuleUsage.rule_id == rule_id
        ).order_by(
            desc(PriceRuleUsage.applied_at), desc(PriceRuleUsage.id)
        ).limit(limit).all()

    def get_rule_stats(self, now: datetime, month_start: datetime) -> Dict[str, Any]:
        """
        Conteos de reglas y ahorro acumulado del mes
        """
        in_window = and_(
            PriceRule.is_active == True,
            PriceRule.start_date <= now,
            or_(PriceRule.end_date == None, PriceRule.end_date >= now)
        )
        expired = and_(
            PriceRule.is_active == True,
            PriceRule.end_date != None,
            PriceRule.end_date < now
        )

        counts = self.db.query(
            func.count(PriceRule.id),
            func.sum(case((in_window, 1), else_=0)),
            func.sum(case((expired, 1), else_=0))
        ).one()

        savings = self.db.query(
            func.coalesce(func.sum(PriceRuleUsage.discount_applied), 0)
        ).filter(
            PriceRuleUsage.applied_at >= month_start
        ).scalar()

        return {
            "total_rules": counts[0] or 0,
            "active_count": counts[1] or 0,
            "expired_count": counts[2] or 0,
            "savings_this_month": Decimal(str(savings or 0))
        }

    @staticmethod
    def _build_targets(product_ids: List[int], category_ids: List[int]) -> List[PriceRuleTarget]:
        targets = [PriceRuleTarget(product_id=pid) for pid in product_ids]
        targets.extend(PriceRuleTarget(category_id=cid) for cid in category_ids)
        return targets

    # ==================== COMBOS ====================

    def list_bundles(self, active_only: bool = False) -> List[ProductBundle]:
        query = self.db.query(ProductBundle).options(selectinload(ProductBundle.items))
        if active_only:
            query = query.filter(ProductBundle.is_active == True)
        return query.order_by(desc(ProductBundle.created_at), desc(ProductBundle.id)).all()

    def get_bundle_by_id(self, bundle_id: int) -> Optional[ProductBundle]:
        return self.db.query(ProductBundle).options(
            selectinload(ProductBundle.items)
        ).filter(ProductBundle.id == bundle_id).first()

    def create_bundle(self, bundle_data: Dict[str, Any], items: List[Dict[str, Any]]) -> ProductBundle:
        bundle = ProductBundle(**bundle_data)
        bundle.items = [BundleItem(**item) for item in items]
        self.db.add(bundle)
        self.db.commit()
        self.db.refresh(bundle)
        return bundle

    def update_bundle(
        self,
        bundle: ProductBundle,
        update_data: Dict[str, Any],
        items: Optional[List[Dict[str, Any]]] = None
    ) -> ProductBundle:
        """Actualización parcial; los items se reemplazan si se envían"""
        for key, value in update_data.items():
            if hasattr(bundle, key):
                setattr(bundle, key, value)
        if items is not None:
            bundle.items = [BundleItem(**item) for item in items]
        self.db.commit()
        self.db.refresh(bundle)
        return bundle

    def delete_bundle(self, bundle: ProductBundle) -> None:
        self.db.delete(bundle)
        self.db.commit()

    def count_bundle_sales(self, bundle_id: int) -> int:
        return self.db.query(func.count(SaleBundle.id)).filter(
            SaleBundle.bundle_id == bundle_id
        ).scalar() or 0
