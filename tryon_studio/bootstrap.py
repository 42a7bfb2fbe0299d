"""Session bootstrap: hydrate saved artifacts and assemble a studio."""

from .catalog import SAMPLE_CATALOG_PATH, GarmentCatalog
from .config import StudioConfig, load_config
from .logging_config import get_logger
from .services import GenerationGateway, StudioGateway
from .storage import ArtifactStore
from .workflow import WorkflowEngine

logger = get_logger(__name__)


def hydrate(store: ArtifactStore) -> dict[str, int]:
    """Load every collection from disk once. Returns the entity count per collection."""
    counts = {name: len(store.load(name)) for name in store.collections}
    logger.info("Loaded saved artifacts: %s", counts)
    return counts


def create_studio(
    config: StudioConfig | None = None,
    gateway: GenerationGateway | None = None,
) -> WorkflowEngine:
    """Build a ready-to-use engine from configuration."""
    config = config or load_config()

    store = ArtifactStore(config.storage.data_dir)
    hydrate(store)

    catalog_path = config.catalog_path or SAMPLE_CATALOG_PATH
    catalog = GarmentCatalog.from_file(catalog_path)
    logger.info("Loaded %d catalog garments from %s", len(catalog), catalog_path)

    return WorkflowEngine(
        gateway=gateway or StudioGateway(config),
        store=store,
        catalog=catalog,
        settle_delay=config.preview.settle_delay,
    )
