# app/modules/promotions/engine/matcher.py
from .types import AllScope, CartLine, CategoryScope, PriceRule, ProductScope, Scope


def in_scope(line: CartLine, scope: Scope) -> bool:
    if isinstance(scope, AllScope):
        return True
    if isinstance(scope, ProductScope):
        return line.product_id in scope.product_ids
    if isinstance(scope, CategoryScope):
        return line.category_id is not None and line.category_id in scope.category_ids
    return False


def matches(line: CartLine, rule: PriceRule) -> bool:
    """¿La línea pertenece al alcance (applies_to) de la regla?"""
    return in_scope(line, rule.scope)
