"""Domain models for the registration spreadsheet importer."""

from .config_models import ColumnSpec, DatabaseConfig, ImportConfig
from .processing_result import ImportReport, OutcomeKind, RowOutcome, SkipReason
from .registration import Registrant, RegistrationRecord
from .resident_status import ResidentStatus
from .row_data import NormalizedRow, SpreadsheetRow

__all__ = [
    # Configuration models
    "ColumnSpec",
    "DatabaseConfig",
    "ImportConfig",
    # Row models
    "SpreadsheetRow",
    "NormalizedRow",
    "ResidentStatus",
    # Persisted entities
    "Registrant",
    "RegistrationRecord",
    # Results
    "OutcomeKind",
    "SkipReason",
    "RowOutcome",
    "ImportReport",
]
