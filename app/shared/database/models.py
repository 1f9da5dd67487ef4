from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.config.database import Base

class TimestampMixin:
    """Mixin para timestamps automáticos"""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

# ===== REGLAS DE PRECIO =====

class PriceRule(Base, TimestampMixin):
    """Modelo de Regla de Precio"""
    __tablename__ = "price_rules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    rule_type = Column(String(50), nullable=False, index=True)  # buy_x_get_y, quantity_discount, time_based, category_discount
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    priority = Column(Integer, default=0, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime)
    min_quantity = Column(Integer)
    buy_quantity = Column(Integer)
    get_quantity = Column(Integer)
    discount_type = Column(String(20), default='percentage', nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    max_uses = Column(Integer)
    used_count = Column(Integer, default=0, nullable=False)
    applies_to = Column(String(20), default='all', nullable=False)
    created_by = Column(Integer)

    __table_args__ = (
        CheckConstraint('max_uses IS NULL OR used_count <= max_uses', name='price_rules_usage_cap'),
    )

    # Relationships
    targets = relationship("PriceRuleTarget", back_populates="rule", cascade="all, delete-orphan")
    usages = relationship("PriceRuleUsage", back_populates="rule")

class PriceRuleTarget(Base):
    """Producto o categoría a la que aplica una regla"""
    __tablename__ = "price_rule_targets"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("price_rules.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer)
    category_id = Column(Integer)

    # Relationships
    rule = relationship("PriceRule", back_populates="targets")

class PriceRuleUsage(Base):
    """Historial de redenciones de una regla por venta"""
    __tablename__ = "price_rule_usage"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("price_rules.id"), nullable=False, index=True)
    sale_id = Column(Integer, nullable=False, index=True)
    discount_applied = Column(Numeric(10, 2), nullable=False)
    applied_at = Column(DateTime, server_default=func.current_timestamp())

    # Relationships
    rule = relationship("PriceRule", back_populates="usages")

# ===== COMBOS =====

class ProductBundle(Base, TimestampMixin):
    """Modelo de Combo de productos"""
    __tablename__ = "product_bundles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    discount_type = Column(String(20), nullable=False)  # percentage, fixed, fixed_price
    discount_value = Column(Numeric(10, 2), nullable=False)
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_by = Column(Integer)

    # Relationships
    items = relationship("BundleItem", back_populates="bundle", cascade="all, delete-orphan")
    sales = relationship("SaleBundle", back_populates="bundle")

class BundleItem(Base):
    """Componente requerido de un combo"""
    __tablename__ = "bundle_items"

    id = Column(Integer, primary_key=True, index=True)
    bundle_id = Column(Integer, ForeignKey("product_bundles.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer)
    quantity_required = Column(Integer, nullable=False, default=1)

    # Relationships
    bundle = relationship("ProductBundle", back_populates="items")

class SaleBundle(Base):
    """Combo redimido en una venta"""
    __tablename__ = "sale_bundles"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, nullable=False, index=True)
    bundle_id = Column(Integer, ForeignKey("product_bundles.id"), nullable=False, index=True)
    times_applied = Column(Integer, nullable=False, default=1)
    discount_applied = Column(Numeric(10, 2), nullable=False)
    applied_at = Column(DateTime, server_default=func.current_timestamp())

    # Relationships
    bundle = relationship("ProductBundle", back_populates="sales")
