"""
Constantes del servicio de sincronizacion.
"""
from enum import Enum


class SyncAction(str, Enum):
    """Resultado de procesar un registro en una corrida."""
    CREATED = "created"
    UPDATED = "updated"
    DRY_CREATE = "dry-create"
    DRY_UPDATE = "dry-update"
    SKIPPED_NO_CHANGE = "skipped_no_change"
    SKIPPED_COOLING = "skipped_cooling_period"
    SKIPPED_NON_TEST_MAPPING = "skipped_existing_non_test_mapping"
    SKIPPED_RATE_LIMITED = "skipped_rate_limited"
    SKIPPED_DUPLICATE_WRITE = "skipped_duplicate_write"
    FAILED_CREATE = "failed_create"
    FAILED_UPDATE = "failed_update"
    FAILED_VALIDATION = "failed_validation"


class RunStatus(str, Enum):
    """Estados de una corrida."""
    RUNNING = "running"
    SUCCESS = "success"
    CANCELLED = "cancelled"
    ERROR = "error"


class MeetStatus(int, Enum):
    """Estado de una audiencia en el sistema origen."""
    ACTIVE = 0
    CANCELLED = 1
    RESCHEDULED = 2


# Labels del board para cada estado de audiencia
MEET_STATUS_LABELS = {
    MeetStatus.ACTIVE: "פעיל",
    MeetStatus.CANCELLED: "מבוטל",
    MeetStatus.RESCHEDULED: "הועבר",
}

# Estado neutral: nunca se escribe para no pisar un estado puesto a mano
NEUTRAL_MEET_STATUS = MeetStatus.ACTIVE

# Prefijo de nombre de item en modo test
TEST_NAME_PREFIX = "[TEST] "

# Fuentes de auditoria
AUDIT_SOURCE_RECONCILIATION = "Reconciliation"
AUDIT_SOURCE_HEARINGS = "HearingSync"

# Nombre del lock de corrida
RUN_LOCK_NAME = "reconciliation"

# Largo maximo del mensaje de error persistido
MAX_ERROR_MESSAGE_LENGTH = 2000
