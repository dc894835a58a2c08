"""Public interface for the ``budget_toolkit`` package.

This module exposes the orchestration entry point, its collaborators and the
public models/types as the stable import surface. There is no runtime logic
here, only symbol re-exports.
"""

from .assignment import BatchAssignmentService
from .catalog import CatalogValidator
from .config import Settings, load_settings
from .edit_cycle import EditCycleController
from .errors import (
    BudgetToolkitError,
    ConfigurationError,
    LedgerApiError,
    ProcessingFailedError,
    TransactionValidationError,
    TransientCallError,
)
from .ledger import FireflyClient, LedgerService
from .models import (
    NO_ASSIGNMENT,
    AIResult,
    Assigned,
    AssignmentType,
    Budget,
    CategorizeMode,
    Category,
    RunOutcome,
    RunStatus,
    Transaction,
)
from .orchestrator import UpdateOrchestrator
from .results import Err, Ok, Result
from .retrying_client import RetryingCallClient

__all__ = [
    # Pipeline
    "UpdateOrchestrator",
    "EditCycleController",
    "CatalogValidator",
    "BatchAssignmentService",
    "RetryingCallClient",
    "FireflyClient",
    "LedgerService",
    # Configuration
    "Settings",
    "load_settings",
    # Models / types
    "AIResult",
    "Assigned",
    "AssignmentType",
    "Budget",
    "CategorizeMode",
    "Category",
    "NO_ASSIGNMENT",
    "RunOutcome",
    "RunStatus",
    "Transaction",
    "Ok",
    "Err",
    "Result",
    # Errors
    "BudgetToolkitError",
    "ConfigurationError",
    "LedgerApiError",
    "ProcessingFailedError",
    "TransactionValidationError",
    "TransientCallError",
]
