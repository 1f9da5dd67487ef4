from datetime import datetime
from decimal import Decimal

from app.modules.promotions.engine import (
    AllScope, Bundle, BundleComponent, CartLine, CategoryScope, PriceRule,
    ProductScope,
)
from app.shared.database import models

NOW = datetime(2026, 10, 18, 12, 0, 0)


def line(product_id, quantity, unit_price, category_id=None, variant_id=None):
    return CartLine(
        product_id=product_id,
        variant_id=variant_id,
        category_id=category_id,
        quantity=quantity,
        unit_price=Decimal(str(unit_price)),
    )


def rule(rule_id, kind, discount_value, scope=None, priority=0, discount_type="percentage", **kwargs):
    data = dict(
        rule_id=rule_id,
        name=kwargs.pop("name", f"Regla {rule_id}"),
        kind=kind,
        priority=priority,
        discount_type=discount_type,
        discount_value=Decimal(str(discount_value)),
        scope=scope or AllScope(),
        start_date=kwargs.pop("start_date", datetime(2026, 1, 1)),
    )
    data.update(kwargs)
    return PriceRule(**data)


def products(*ids):
    return ProductScope(product_ids=frozenset(ids))


def categories(*ids):
    return CategoryScope(category_ids=frozenset(ids))


def bundle(bundle_id, components, discount_value, discount_type="percentage", **kwargs):
    return Bundle(
        bundle_id=bundle_id,
        name=kwargs.pop("name", f"Combo {bundle_id}"),
        components=tuple(
            BundleComponent(product_id=c[0], quantity=c[1], variant_id=c[2] if len(c) > 2 else None)
            for c in components
        ),
        discount_type=discount_type,
        discount_value=Decimal(str(discount_value)),
        **kwargs,
    )


def seed_rule_row(db, **overrides):
    """Insert a price_rules row (plus scope targets) and return it."""
    product_ids = overrides.pop("product_ids", [])
    category_ids = overrides.pop("category_ids", [])
    data = dict(
        name="Regla",
        rule_type="quantity_discount",
        is_active=True,
        priority=0,
        start_date=datetime(2020, 1, 1),
        end_date=None,
        min_quantity=1,
        discount_type="percentage",
        discount_value=Decimal("10"),
        used_count=0,
        applies_to="all",
    )
    data.update(overrides)
    row = models.PriceRule(**data)
    row.targets = [models.PriceRuleTarget(product_id=p) for p in product_ids] + [
        models.PriceRuleTarget(category_id=c) for c in category_ids
    ]
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def seed_bundle_row(db, items, **overrides):
    data = dict(
        name="Combo",
        discount_type="percentage",
        discount_value=Decimal("10"),
        is_active=True,
    )
    data.update(overrides)
    row = models.ProductBundle(**data)
    row.items = [
        models.BundleItem(product_id=p, quantity_required=q, variant_id=v)
        for p, q, v in ((i + (None,))[:3] for i in items)
    ]
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
