"""
Script para inicializar la base de datos.

Crea las tablas del servicio (mappings, snapshots, auditoria, metricas,
locks) y las tablas origen si no existen. En produccion preferir
`alembic upgrade head`.
"""
import asyncio
import sys
from pathlib import Path

from loguru import logger

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from boardsync.infrastructure.database.session import close_db, init_db


async def main():
    """Funcion principal para inicializar la base de datos."""
    logger.info("Inicializando base de datos...")

    try:
        await init_db()
        logger.success("Base de datos inicializada correctamente")
    except Exception as e:
        logger.error(f"Error al inicializar base de datos: {e}")
        raise
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
