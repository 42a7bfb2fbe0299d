"""Virtual try-on studio: workflow engine, live preview, edit history and saved looks."""

from .bootstrap import create_studio, hydrate
from .catalog import GarmentCatalog
from .config import StudioConfig, load_config
from .errors import GatewayError, InvalidInput, OperationInProgress, StudioError, TransitionNotAllowed
from .history import EditHistory
from .preview import PreviewScheduler
from .storage import ArtifactStore
from .workflow import Step, WorkflowEngine

__all__ = [
    "create_studio",
    "hydrate",
    "GarmentCatalog",
    "StudioConfig",
    "load_config",
    "StudioError",
    "InvalidInput",
    "TransitionNotAllowed",
    "OperationInProgress",
    "GatewayError",
    "EditHistory",
    "PreviewScheduler",
    "ArtifactStore",
    "Step",
    "WorkflowEngine",
]
