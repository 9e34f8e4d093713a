"""
Modelos de base de datos (ORM).

Tablas propias del servicio:
- item_mappings: registro origen <-> item del board (watermark + checksum)
- hearing_snapshots: ultimo estado de audiencia aplicado en el board
- sync_logs: auditoria append-only de cada resultado
- sync_failures: dead letter de registros fallidos
- sync_run_metrics: metricas por corrida
- sync_run_locks: lock de corrida entre procesos

Tablas origen (lectura):
- source_cases / source_hearings
"""
from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, Text, JSON, Boolean, Index
)
from sqlalchemy.sql import func

from boardsync.infrastructure.database.session import Base


class ItemMappingModel(Base):
    """
    Mapeo persistente entre un registro origen y su item en el board.

    natural_key es unico (compatibilidad legacy); display_key puede ser
    nulo en filas antiguas.
    """

    __tablename__ = "item_mappings"
    __table_args__ = (
        Index("ix_item_mappings_scope_natural_key", "container_scope", "natural_key"),
        Index("ix_item_mappings_scope_display_key", "container_scope", "display_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    natural_key = Column(Integer, nullable=False, unique=True)
    display_key = Column(String(100), nullable=True)
    container_scope = Column(BigInteger, nullable=False)
    remote_item_id = Column(BigInteger, nullable=False)
    version_watermark = Column(String(64), nullable=False, default="")
    checksum = Column(String(500), nullable=False, default="")
    is_test = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return (
            f"<ItemMapping(natural_key={self.natural_key}, display_key={self.display_key}, "
            f"remote_item_id={self.remote_item_id})>"
        )


class HearingSnapshotModel(Base):
    """Ultimo estado de audiencia aplicado al item (por natural_key y board)."""

    __tablename__ = "hearing_snapshots"
    __table_args__ = (
        Index("ux_hearing_snapshots_key_board", "natural_key", "board_id", unique=True),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    natural_key = Column(Integer, nullable=False)
    board_id = Column(BigInteger, nullable=False)
    remote_item_id = Column(BigInteger, nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=True)
    meet_status = Column(Integer, nullable=True)
    judge_name = Column(String(255), nullable=True)
    city = Column(String(255), nullable=True)
    last_synced_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<HearingSnapshot(natural_key={self.natural_key}, board_id={self.board_id})>"


class SyncLogModel(Base):
    """Auditoria append-only: una fila por resultado (create/update/skip/fail) o resumen."""

    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    run_id = Column(String(64), nullable=True, index=True)
    source = Column(String(100), nullable=False)
    level = Column(String(20), nullable=False, default="Info")
    message = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<SyncLog(id={self.id}, source={self.source}, level={self.level})>"


class SyncFailureModel(Base):
    """Dead letter de registros que no pudieron sincronizarse."""

    __tablename__ = "sync_failures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(64), nullable=False, index=True)
    natural_key = Column(Integer, nullable=False, index=True)
    display_key = Column(String(100), nullable=True)
    board_id = Column(BigInteger, nullable=False)
    operation = Column(String(50), nullable=False)
    error_type = Column(String(200), nullable=False)
    error_message = Column(String(2000), nullable=False)
    stack_trace = Column(Text, nullable=True)
    retry_attempts = Column(Integer, nullable=False, default=0)
    resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<SyncFailure(run_id={self.run_id}, natural_key={self.natural_key}, op={self.operation})>"


class SyncRunMetricModel(Base):
    """Metricas de una corrida de reconciliacion."""

    __tablename__ = "sync_run_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(64), nullable=False, unique=True)
    started_at = Column(DateTime(timezone=True), nullable=False, index=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default="running")
    created = Column(Integer, nullable=False, default=0)
    updated = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    failed = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer, nullable=True)
    watermark_used = Column(DateTime(timezone=True), nullable=True)
    error = Column(Text, nullable=True)

    def __repr__(self):
        return f"<SyncRunMetric(run_id={self.run_id}, status={self.status})>"


class SyncRunLockModel(Base):
    """Lock de corrida con expiracion (evita pasadas solapadas entre procesos)."""

    __tablename__ = "sync_run_locks"

    name = Column(String(100), primary_key=True)
    locked_by = Column(String(100), nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<SyncRunLock(name={self.name}, locked_by={self.locked_by})>"


class SourceCaseModel(Base):
    """Caso del sistema origen (solo lectura para el servicio)."""

    __tablename__ = "source_cases"

    natural_key = Column(Integer, primary_key=True, autoincrement=False)
    case_number = Column(String(100), nullable=True, index=True)
    case_name = Column(String(500), nullable=True)
    client_name = Column(String(255), nullable=True)
    status_name = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    modified_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<SourceCase(natural_key={self.natural_key}, case_number={self.case_number})>"


class SourceHearingModel(Base):
    """Evento de agenda (audiencia) de un caso en el sistema origen."""

    __tablename__ = "source_hearings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    natural_key = Column(Integer, nullable=False, index=True)
    start_at = Column(DateTime(timezone=True), nullable=True)
    meet_status = Column(Integer, nullable=True)
    judge_name = Column(String(255), nullable=True)
    city = Column(String(255), nullable=True)
    court_name = Column(String(255), nullable=True)
    modified_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<SourceHearing(natural_key={self.natural_key}, start_at={self.start_at})>"
