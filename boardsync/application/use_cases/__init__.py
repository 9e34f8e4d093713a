"""
Casos de uso de la aplicacion.
"""
from .sync_options import HearingColumns, SyncOptions
from .alert_use_cases import AlertNotifier, build_alert_notifier
from .hearing_sync_use_cases import HearingSyncUseCases
from .reconciliation_use_cases import ReconciliationUseCases

__all__ = [
    "HearingColumns",
    "SyncOptions",
    "AlertNotifier",
    "build_alert_notifier",
    "HearingSyncUseCases",
    "ReconciliationUseCases",
]
