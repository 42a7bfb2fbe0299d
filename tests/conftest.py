# Test fixtures and configuration
import asyncio
import base64
import io
import pytest
import sys
from pathlib import Path

from PIL import Image

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tryon_studio.catalog import GarmentCatalog
from tryon_studio.models import (
    FitAnalysis,
    GarmentCategory,
    GarmentFit,
    GarmentItem,
    Measurement,
    PersonMeasurements,
    UserPhoto,
)
from tryon_studio.storage import ArtifactStore
from tryon_studio.workflow import WorkflowEngine


class FakeGateway:
    """Scripted GenerationGateway.

    Results are base64 of a readable label ("composite-0", "edit-1", ...),
    numbered per operation in call order. ``errors`` makes an operation
    fail; the gates hold a call until the test releases it.
    """

    def __init__(self, analysis: FitAnalysis):
        self.analysis = analysis
        self.calls: list[tuple[str, tuple]] = []
        self.errors: dict[str, Exception] = {}
        self.compose_gates: dict[int, asyncio.Event] = {}
        self.analyze_gate: asyncio.Event | None = None
        self.edit_gate: asyncio.Event | None = None

    @staticmethod
    def encode(label: str) -> str:
        return base64.b64encode(label.encode()).decode()

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    def _record(self, operation: str, *args) -> int:
        index = self.count(operation)
        self.calls.append((operation, args))
        return index

    async def compose_preview(self, photo, items):
        index = self._record("compose_preview", photo, tuple(items))
        gate = self.compose_gates.get(index)
        if gate is not None:
            await gate.wait()
        if "compose_preview" in self.errors:
            raise self.errors["compose_preview"]
        return self.encode(f"composite-{index}")

    async def analyze_fit(self, photo, items, height=None):
        self._record("analyze_fit", photo, tuple(items), height)
        if self.analyze_gate is not None:
            await self.analyze_gate.wait()
        if "analyze_fit" in self.errors:
            raise self.errors["analyze_fit"]
        return self.analysis

    async def apply_edit(self, image, instruction):
        index = self._record("apply_edit", image, instruction)
        if self.edit_gate is not None:
            await self.edit_gate.wait()
        if "apply_edit" in self.errors:
            raise self.errors["apply_edit"]
        return self.encode(f"edit-{index}")

    async def create_garment(self, prompt):
        index = self._record("create_garment", prompt)
        if "create_garment" in self.errors:
            raise self.errors["create_garment"]
        return self.encode(f"garment-{index}")


@pytest.fixture
def minimal_png_bytes():
    """A tiny valid PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (2, 2), "red").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def photo(minimal_png_bytes):
    encoded = base64.b64encode(minimal_png_bytes).decode()
    return UserPhoto(base64=encoded, mime_type="image/png", url=f"data:image/png;base64,{encoded}")


@pytest.fixture
def top():
    return GarmentItem(
        id=1,
        category=GarmentCategory.TOP,
        name="White Tee",
        image_url="https://example.com/tee.png",
        description="Plain white cotton t-shirt.",
    )


@pytest.fixture
def hoodie():
    return GarmentItem(
        id=2,
        category=GarmentCategory.TOP,
        name="Black Hoodie",
        image_url="https://example.com/hoodie.png",
        description="Heavyweight black hoodie.",
    )


@pytest.fixture
def pants():
    return GarmentItem(
        id=3,
        category=GarmentCategory.PANTS,
        name="Blue Jeans",
        image_url="https://example.com/jeans.png",
        description="Straight-leg blue denim.",
    )


@pytest.fixture
def shoes():
    return GarmentItem(
        id=4,
        category=GarmentCategory.SHOES,
        name="White Sneakers",
        image_url="https://example.com/sneakers.png",
    )


@pytest.fixture
def fit_analysis():
    return FitAnalysis(
        person_measurements=PersonMeasurements(
            measurements=[Measurement(name="Chest", value="38"), Measurement(name="Waist", value="32")],
            notes="Athletic build.",
        ),
        clothing_fit=[
            GarmentFit(
                item_name="White Tee",
                item_type=GarmentCategory.TOP,
                fit_description="Size M fits true to size.",
                garment_measurements=[Measurement(name="Length", value="28")],
            )
        ],
    )


@pytest.fixture
def gateway(fit_analysis):
    return FakeGateway(fit_analysis)


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "studio")


@pytest.fixture
def catalog(top, hoodie, pants, shoes):
    return GarmentCatalog([top, hoodie, pants, shoes])


@pytest.fixture
def engine(gateway, store, catalog):
    return WorkflowEngine(gateway, store, catalog, settle_delay=0.01)
