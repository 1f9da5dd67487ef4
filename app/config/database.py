from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from .settings import settings

def _engine_options(url: str) -> dict:
    """Opciones del engine según el dialecto (SQLite para desarrollo y pruebas)"""
    options = {"pool_pre_ping": True, "echo": settings.debug}
    if make_url(url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_recycle"] = 300
    return options

# Create engine
engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()

# Database dependency
def get_db():
    """
    Sesión por request. Las escrituras (cierre de venta, CRUD de reglas)
    confirman explícitamente en el servicio; aquí solo se cierra.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
