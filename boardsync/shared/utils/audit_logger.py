"""
SyncAuditLogger - logging estructurado de corridas de sincronizacion.

Complementa la tabla sync_logs con archivos legibles:
- sync_logs/: log diario de todas las corridas (contexto "sync")
- run_logs/: un archivo por corrida con el detalle de cada registro
"""
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger


class SyncAuditLogger:
    """
    Gestor de logs de auditoria de corridas.

    Uso:
        SyncAuditLogger.initialize()
        SyncAuditLogger.start_run(run_id, dry_run=False, test_mode=False)
        SyncAuditLogger.log_outcome(run_id, "created", natural_key=100, ...)
        SyncAuditLogger.finish_run(run_id, {"created": 1, ...})
    """

    BASE_LOG_DIR = Path("logs")
    SYNC_LOG_DIR = BASE_LOG_DIR / "sync_logs"
    RUN_LOG_DIR = BASE_LOG_DIR / "run_logs"

    FILE_TIMESTAMP_FORMAT = "%Y-%m-%d"

    _run_loggers: Dict[str, Any] = {}
    _run_handlers: Dict[str, int] = {}
    _initialized: bool = False

    @classmethod
    def initialize(cls) -> None:
        """Crea las carpetas y el sink diario. Idempotente."""
        if cls._initialized:
            return

        cls.SYNC_LOG_DIR.mkdir(parents=True, exist_ok=True)
        cls.RUN_LOG_DIR.mkdir(parents=True, exist_ok=True)

        logger.add(
            str(cls.SYNC_LOG_DIR / "sync_{time:YYYY-MM-DD}.log"),
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {message}",
            filter=lambda record: record["extra"].get("context") == "sync",
            rotation="1 day",
            retention="30 days",
            level="DEBUG",
        )

        cls._initialized = True
        logger.info("SyncAuditLogger inicializado")

    @classmethod
    def start_run(cls, run_id: str, **flags: Any) -> None:
        if not cls._initialized:
            cls.initialize()

        date_str = datetime.now().strftime(cls.FILE_TIMESTAMP_FORMAT)
        log_file = cls.RUN_LOG_DIR / f"run_{date_str}_{run_id[:8]}.log"
        handler_id = logger.add(
            str(log_file),
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {message}",
            filter=lambda record, rid=run_id: record["extra"].get("run_id") == rid,
            level="DEBUG",
        )
        run_logger = logger.bind(run_id=run_id)
        cls._run_loggers[run_id] = run_logger
        cls._run_handlers[run_id] = handler_id

        run_logger.info("=" * 60)
        run_logger.info(f"CORRIDA INICIADA {run_id}")
        run_logger.info(f"Flags: {json.dumps(flags, default=str)}")
        run_logger.info("=" * 60)
        logger.bind(context="sync").info(f"[{run_id[:8]}] corrida iniciada {flags}")

    @classmethod
    def log_outcome(
        cls,
        run_id: str,
        action: str,
        natural_key: int,
        display_key: Optional[str] = None,
        remote_item_id: Optional[int] = None,
        error: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Una linea por registro procesado (create/update/skip/fail)."""
        line = (
            f"[{run_id[:8]}] {action} natural_key={natural_key} "
            f"display_key={display_key} item={remote_item_id}"
        )
        if error:
            line += f" error={error}"
        sync_logger = logger.bind(context="sync")
        if error:
            sync_logger.error(line)
        else:
            sync_logger.info(line)

        run_logger = cls._run_loggers.get(run_id)
        if run_logger is not None and details:
            run_logger.debug(f"{action} {natural_key}\n{json.dumps(details, indent=2, default=str)}")

    @classmethod
    def finish_run(cls, run_id: str, summary: Dict[str, Any]) -> None:
        logger.bind(context="sync").info(f"[{run_id[:8]}] corrida finalizada {summary}")

        run_logger = cls._run_loggers.pop(run_id, None)
        if run_logger is not None:
            run_logger.info("=" * 60)
            run_logger.info(f"CORRIDA FINALIZADA {json.dumps(summary, default=str)}")
            run_logger.info("=" * 60)

        handler_id = cls._run_handlers.pop(run_id, None)
        if handler_id is not None:
            logger.remove(handler_id)

