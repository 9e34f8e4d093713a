"""
CLI: una pasada de reconciliacion origen -> board.

Uso recomendado:
  - Diagnostico manual o ejecucion como job (cron) cuando el worker
    periodico esta deshabilitado (SYNC_ENABLED=false).

Variables de entorno requeridas:
  - BOARD_API_TOKEN
  - BOARD_ID
  - DATABASE_URL (o DATABASE_HOST/PORT/USER/PASSWORD/NAME)

Ejecucion:
  python scripts/run_sync_once.py
  python scripts/run_sync_once.py --dry-run
  python scripts/run_sync_once.py --max-items 10
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

load_dotenv(_ROOT / ".env", override=False)

from boardsync.core.config import settings
from boardsync.infrastructure.database.session import AsyncSessionLocal, close_db, init_db
from boardsync.infrastructure.external.board.board_client import BoardClient
from boardsync.infrastructure.external.board.types import BoardCredentials
from boardsync.infrastructure.scheduler.sync_worker import SyncWorker
from boardsync.shared.utils.audit_logger import SyncAuditLogger


async def _run(dry_run: bool | None, max_items: int | None) -> int:
    await init_db()
    SyncAuditLogger.initialize()

    async with BoardClient(
        BoardCredentials(token=settings.BOARD_API_TOKEN, api_url=settings.BOARD_API_URL),
        timeout_s=settings.BOARD_API_TIMEOUT_SECONDS,
    ) as board:
        worker = SyncWorker(settings, AsyncSessionLocal, board)
        try:
            summary = await worker.run_once(dry_run=dry_run, max_items=max_items)
        finally:
            await close_db()

    if summary is None:
        logger.error("La pasada no se completo (ver logs)")
        return 1

    logger.info(
        f"Pasada {summary.run_id} [{summary.status}]: creados={summary.created} "
        f"actualizados={summary.updated} omitidos={summary.skipped} fallidos={summary.failed}"
    )
    return 0 if summary.status == "success" else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Una pasada de reconciliacion con el board")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Calcula el plan sin escribir en el board.",
    )
    parser.add_argument(
        "--max-items",
        type=int,
        default=None,
        help="Limita la cantidad de registros del lote (0 = sin limite).",
    )
    args = parser.parse_args()

    if not settings.BOARD_API_TOKEN or not settings.BOARD_ID:
        raise SystemExit("Faltan BOARD_API_TOKEN o BOARD_ID")

    return asyncio.run(_run(args.dry_run, args.max_items))


if __name__ == "__main__":
    raise SystemExit(main())
