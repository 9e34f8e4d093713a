"""
Engine y sesiones de base de datos del servicio.

Una sesion por pasada de reconciliacion; cada escritura de registro hace su
propio commit. Las lecturas no toman locks:
- PostgreSQL corre en READ COMMITTED (snapshot por sentencia, MVCC).
- SQLite (tests / local) espera DB_SQLITE_BUSY_TIMEOUT_SECONDS antes de
  fallar con "database is locked", error que el reintento transitorio
  reconoce.
"""
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker
)
from sqlalchemy.orm import declarative_base

from boardsync.core.config import Settings, settings


# Base para modelos de SQLAlchemy
Base = declarative_base()


def build_engine_args(database_url: str, config: Settings = settings) -> Dict[str, Any]:
    """
    Argumentos del engine segun el motor de la URL.

    Args:
        database_url: URL efectiva de la base de datos
        config: Settings de donde tomar pool e isolation

    Returns:
        dict: kwargs para create_async_engine
    """
    args: Dict[str, Any] = {"echo": config.DEBUG}

    if database_url.startswith("postgresql"):
        args.update({
            "pool_size": config.DB_POOL_SIZE,
            "max_overflow": config.DB_MAX_OVERFLOW,
            "pool_pre_ping": True,
            "isolation_level": config.DB_ISOLATION_LEVEL,
        })
    elif database_url.startswith("sqlite"):
        args["connect_args"] = {"timeout": config.DB_SQLITE_BUSY_TIMEOUT_SECONDS}

    return args


engine = create_async_engine(
    settings.effective_database_url,
    **build_engine_args(settings.effective_database_url),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Sesion para dependencias de FastAPI (endpoints de consulta).

    Los repositorios ya hacen commit por escritura; aca solo se garantiza
    rollback ante error y cierre de la sesion.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Crea las tablas que falten (bootstrap sin Alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
