# app/api/v1/router.py
from fastapi import APIRouter

from app.config.settings import settings
from app.modules.promotions import promotions_router


# Crear router principal de la API v1
api_router = APIRouter(prefix="/api/v1")

# ==================== MÓDULOS ====================

api_router.include_router(promotions_router)

# ==================== ENDPOINTS RAÍZ ====================

@api_router.get("/")
async def api_root():
    """Root endpoint de la API"""
    return {
        "message": f"{settings.app_name} v1",
        "version": settings.version,
        "status": "active",
        "available_endpoints": {
            "promotions": "/api/v1/promotions"
        }
    }

@api_router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.version,
        "modules": {
            "promotions": {
                "status": "active",
                "features": [
                    "Vista previa de descuentos (detect)",
                    "Cierre con registro de usos (finalize)",
                    "Reglas de precio: buy_x_get_y, quantity_discount, time_based, category_discount",
                    "Combos de productos"
                ]
            }
        }
    }
