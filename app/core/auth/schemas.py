from pydantic import BaseModel
from typing import Optional
from enum import Enum

class UserRole(str, Enum):
    VENDEDOR = "vendedor"
    ADMINISTRADOR = "administrador"
    BOSS = "boss"

class Actor(BaseModel):
    """
    Identidad del usuario autenticado. La emite el servicio de autenticación;
    aquí solo se consume.
    """
    id: int
    role: UserRole
    email: Optional[str] = None
    location_id: Optional[int] = None
