# app/modules/promotions/__init__.py
"""
Módulo de Promociones - Motor de resolución de descuentos

Decide qué reglas de precio y combos aplican a un carrito, cuánto valen y en
qué orden se consumen, sin descontar dos veces la misma unidad y sin exceder
los topes de uso configurados.

- Vista previa (detect): sin efectos secundarios, en cada cambio del carrito
- Cierre (finalize): recalcula y registra usos dentro de la transacción de la venta
- Administración de reglas de precio y combos

Arquitectura:
- router.py: Endpoints FastAPI
- service.py: Lógica de negocio
- repository.py: Acceso a datos
- schemas.py: Modelos Pydantic de request/response
- engine/: Motor puro (sin acceso a datos salvo el registro de usos)
"""

from .router import router as promotions_router
from .service import PromotionService
from .repository import PromotionRepository

__all__ = [
    "promotions_router",
    "PromotionService",
    "PromotionRepository"
]
