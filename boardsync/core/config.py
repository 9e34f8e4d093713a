"""
Configuracion central del servicio de sincronizacion.
Gestiona variables de entorno y configuraciones globales.
Soporta configuracion dinamica para desarrollo (ENVIRONMENT=development)
y produccion (ENVIRONMENT=production).
"""
from datetime import date
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion del servicio.
    Lee variables de entorno y proporciona valores por defecto.

    Grupos:
    - Base de datos (mapeos, auditoria, snapshots y tablas origen)
    - Board remoto (token, board, grupo y ids de columnas)
    - Sync (intervalo, dry run, modo test, limites y ventanas)
    - Alertas (dedup, rate limit, digest y Telegram)
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="BoardSync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Base de datos - Componentes separados
    DATABASE_HOST: str = Field(default="localhost")
    DATABASE_PORT: int = Field(default=5432)
    DATABASE_USER: str = Field(default="boardsync_user")
    DATABASE_PASSWORD: str = Field(default="boardsync_pass")
    DATABASE_NAME: str = Field(default="boardsync_db")

    # Base de datos - URL completa (override de componentes si se proporciona)
    DATABASE_URL: str = Field(default="")
    DB_POOL_SIZE: int = Field(default=5)
    DB_MAX_OVERFLOW: int = Field(default=10)
    # Lecturas sin locks: snapshot por sentencia en PostgreSQL
    DB_ISOLATION_LEVEL: str = Field(default="READ COMMITTED")
    # SQLite: espera antes de devolver "database is locked"
    DB_SQLITE_BUSY_TIMEOUT_SECONDS: float = Field(default=15.0)

    # Board remoto (API GraphQL)
    BOARD_API_URL: str = Field(default="https://api.monday.com/v2")
    BOARD_API_TOKEN: str = Field(default="")
    BOARD_API_TIMEOUT_SECONDS: float = Field(default=30.0)
    BOARD_ID: int = Field(default=0)
    BOARD_GROUP_ID: str = Field(default="topics")

    # Columnas del board (ids)
    DISPLAY_KEY_COLUMN_ID: str = Field(default="text_case_number")
    CLIENT_COLUMN_ID: str = Field(default="dropdown_client")
    CLIENT_TEXT_COLUMN_ID: str = Field(default="")
    CASE_STATUS_COLUMN_ID: str = Field(default="color_case_status")
    CASE_STATUS_NEW_LABEL: str = Field(default="חדש")
    NOTES_COLUMN_ID: str = Field(default="long_text_notes")
    OPENED_DATE_COLUMN_ID: str = Field(default="date_opened")
    HEARING_STATUS_COLUMN_ID: str = Field(default="color_hearing_status")
    JUDGE_COLUMN_ID: str = Field(default="text_judge")
    CITY_COLUMN_ID: str = Field(default="text_city")
    HEARING_DATE_COLUMN_ID: str = Field(default="date_hearing")
    HEARING_HOUR_COLUMN_ID: str = Field(default="hour_hearing")

    # Sync
    SYNC_ENABLED: bool = Field(default=True)
    SYNC_INTERVAL_SECONDS: int = Field(default=1200)
    SYNC_DRY_RUN: bool = Field(default=False)
    SYNC_TEST_MODE: bool = Field(default=False)
    SYNC_MAX_ITEMS_PER_RUN: int = Field(default=0)
    # Lista separada por comas de natural keys permitidas (vacia = todas)
    SYNC_ALLOWED_KEYS: str = Field(default="")
    SYNC_CUTOFF_DATE: Optional[date] = Field(default=None)
    SYNC_COOLING_BUSINESS_DAYS: int = Field(default=0)
    SYNC_WATERMARK_OVERLAP_MINUTES: int = Field(default=2)
    SYNC_FIRST_RUN_LOOKBACK_MINUTES: int = Field(default=5)
    SYNC_HEARINGS_ENABLED: bool = Field(default=True)
    SYNC_RUN_LOCK_TTL_MINUTES: int = Field(default=30)
    SYNC_TRANSIENT_RETRY_DELAY_SECONDS: float = Field(default=0.1)

    # Guardrail de escrituras salientes (compartido por todo el proceso)
    WRITE_DEDUP_WINDOW_SECONDS: int = Field(default=60)
    WRITE_MAX_LIFETIME: int = Field(default=500)
    WRITE_MAX_PER_MINUTE: int = Field(default=60)

    # Alertas
    ALERTS_ENABLED: bool = Field(default=True)
    ALERT_DEDUP_WINDOW_MINUTES: int = Field(default=60)
    ALERT_MAX_PER_HOUR: int = Field(default=10)
    ALERT_MAX_LIFETIME: int = Field(default=500)
    ALERT_DIGEST_INTERVAL_MINUTES: int = Field(default=15)
    ALERT_QUEUE_CAPACITY: int = Field(default=100)
    ALERT_SUBJECT_PREFIX: str = Field(default="[BOARDSYNC ALERT]")
    TELEGRAM_BOT_TOKEN: str = Field(default="")
    TELEGRAM_CHAT_ID: str = Field(default="")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """
        Retorna la URL de base de datos efectiva.
        Si DATABASE_URL esta definida, la usa directamente.
        Si no, construye la URL desde los componentes individuales.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def parse_allowed_keys(raw: str) -> List[int]:
    """
    Parsea la lista de natural keys permitidas.
    Acepta "1,2, 3"; ignora entradas vacias o no numericas.
    """
    keys: List[int] = []
    for part in (raw or "").split(","):
        part = part.strip()
        if part.isdigit():
            keys.append(int(part))
    return keys


# Instancia global de configuracion
settings = Settings()
