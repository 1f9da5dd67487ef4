from typing import List
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from app.config.settings import settings
from .schemas import Actor

bearer_scheme = HTTPBearer(auto_error=False)

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)
) -> Actor:
    """Decodificar el JWT del header Authorization en un Actor"""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No se pudieron validar las credenciales",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized
    
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
        return Actor(
            id=int(payload["sub"]),
            role=payload["role"],
            email=payload.get("email"),
            location_id=payload.get("location_id"),
        )
    except (JWTError, KeyError, ValueError, ValidationError):
        raise unauthorized

def require_roles(roles: List[str]):
    """Dependencia que solo deja pasar a los roles indicados"""
    def checker(current_user: Actor = Depends(get_current_user)) -> Actor:
        if current_user.role.value not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Rol '{current_user.role.value}' sin permisos para esta operación"
            )
        return current_user
    return checker
