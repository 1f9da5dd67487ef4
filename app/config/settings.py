from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    # App Info
    app_name: str = "Retail Promotions API"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    
    # Database
    database_url: str
    
    # Security
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 10080  # 1 week
    
    # CORS
    allowed_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    
    # Promociones
    promotions_max_cart_lines: int = Field(
        default=200,
        description="Máximo de líneas de carrito aceptadas por detect/finalize"
    )
    promotions_usage_history_limit: int = Field(
        default=50,
        description="Filas de historial de uso devueltas por regla"
    )
    
    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

settings = Settings()
