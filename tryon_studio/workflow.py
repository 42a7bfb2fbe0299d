"""Try-on workflow: the step state machine and the operations that drive it."""

import base64
import contextlib
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, ClassVar, Iterator, Union

from pydantic import ValidationError

from .catalog import GarmentCatalog
from .errors import GatewayError, InvalidInput, OperationInProgress, TransitionNotAllowed
from .history import EditHistory
from .logging_config import get_logger
from .models import (
    FitAnalysis,
    GarmentCategory,
    GarmentItem,
    Height,
    OutfitSelection,
    SavedLook,
    SavedMeasurement,
    UserPhoto,
    formatted_analysis,
)
from .presets import Preset, presets_for
from .preview import DEFAULT_SETTLE_DELAY, PreviewScheduler
from .services.gateway import GenerationGateway
from .storage import LOOKS, MEASUREMENTS, ArtifactStore
from .utils.images import photo_from_upload, to_data_url

logger = get_logger(__name__)

DOWNLOAD_FILENAME = "tryon_look.png"


class Step(str, Enum):
    CAPTURE = "capture"
    HEIGHT = "height"
    SELECT = "select"
    MEASURE = "measure"
    GENERATE = "generate"
    CUSTOMIZE = "customize"
    RESULT = "result"


# One state class per step, carrying only what is valid in that step.

@dataclass(frozen=True)
class CaptureState:
    step: ClassVar[Step] = Step.CAPTURE


@dataclass(frozen=True)
class HeightState:
    photo: UserPhoto
    selection: OutfitSelection = field(default_factory=OutfitSelection)
    step: ClassVar[Step] = Step.HEIGHT


@dataclass(frozen=True)
class SelectState:
    photo: UserPhoto
    height: Height
    selection: OutfitSelection = field(default_factory=OutfitSelection)
    step: ClassVar[Step] = Step.SELECT


@dataclass(frozen=True)
class MeasureState:
    photo: UserPhoto
    height: Height
    selection: OutfitSelection
    analysis: FitAnalysis | None = None  # None while the analysis is outstanding
    saved_measurement_id: int | None = None
    step: ClassVar[Step] = Step.MEASURE

    @property
    def measurement_saved(self) -> bool:
        return self.saved_measurement_id is not None


@dataclass(frozen=True)
class GenerateState:
    photo: UserPhoto
    height: Height
    selection: OutfitSelection
    analysis: FitAnalysis | None = None
    step: ClassVar[Step] = Step.GENERATE


@dataclass(frozen=True)
class CustomizeState:
    photo: UserPhoto
    height: Height
    selection: OutfitSelection
    history: EditHistory
    analysis: FitAnalysis | None = None
    step: ClassVar[Step] = Step.CUSTOMIZE


@dataclass(frozen=True)
class ResultState:
    photo: UserPhoto
    height: Height
    selection: OutfitSelection
    final_image: str
    analysis: FitAnalysis | None = None
    saved_look_id: int | None = None
    step: ClassVar[Step] = Step.RESULT

    @property
    def look_saved(self) -> bool:
        return self.saved_look_id is not None


WorkflowState = Union[
    CaptureState,
    HeightState,
    SelectState,
    MeasureState,
    GenerateState,
    CustomizeState,
    ResultState,
]


@dataclass(frozen=True)
class GarmentDraft:
    """An in-progress "create your own garment" request."""
    category: GarmentCategory = GarmentCategory.TOP
    prompt: str = ""
    image: str | None = None  # base64 PNG once generated
    error: str | None = None
    is_loading: bool = False


@dataclass(frozen=True)
class LookExport:
    filename: str
    mime_type: str
    data: bytes


class OperationSlot:
    """Allows one outstanding call per operation class."""

    def __init__(self, name: str):
        self.name = name
        self._held = False

    @property
    def busy(self) -> bool:
        return self._held

    @contextlib.contextmanager
    def hold(self) -> Iterator[None]:
        if self._held:
            raise OperationInProgress(f"{self.name} is already in progress.")
        self._held = True
        try:
            yield
        finally:
            self._held = False


def validate_height(feet: int | str, inches: int | str) -> Height:
    """Parse and check a height entry.

    Raises:
        InvalidInput: non-integer parts, feet below 3 or inches outside 0-11.
    """
    try:
        return Height(feet=int(str(feet).strip()), inches=int(str(inches).strip()))
    except (ValueError, ValidationError) as e:
        raise InvalidInput("Please enter a valid height (at least 3 ft, 0-11 in).") from e


def is_valid_height(feet: int | str, inches: int | str) -> bool:
    try:
        validate_height(feet, inches)
    except InvalidInput:
        return False
    return True


def _short_name(prompt: str) -> str:
    return f"{prompt[:18]}..." if len(prompt) > 20 else prompt


def _failure_message(error: Exception, default: str) -> str:
    if isinstance(error, GatewayError):
        return error.message
    return str(error) or default


class WorkflowEngine:
    """Drives one user through capture, height, selection, measurement,
    generation, customization and result.

    Guards are checked on every call. Input problems raise ``InvalidInput``,
    actions that do not fit the current step raise ``TransitionNotAllowed``
    and actions attempted while a blocking call is outstanding raise
    ``OperationInProgress``; none of them change state. Gateway failures are
    not raised: they set ``error`` and fall back to the selection step.
    """

    def __init__(
        self,
        gateway: GenerationGateway,
        store: ArtifactStore,
        catalog: GarmentCatalog | None = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway
        self.store = store
        self.catalog = catalog if catalog is not None else GarmentCatalog()
        self.preview = PreviewScheduler(gateway, settle_delay=settle_delay)
        self.state: WorkflowState = CaptureState()
        self.error: str | None = None
        self.draft: GarmentDraft | None = None
        self._clock = clock
        self._last_id = 0
        self._epoch = 0
        self._draft_token = 0
        self._new_slots()

    def _new_slots(self) -> None:
        # Replaced on start over so calls from an abandoned session cannot
        # block the new one.
        self._analyze = OperationSlot("Measurement analysis")
        self._compose = OperationSlot("Outfit generation")
        self._create = OperationSlot("Garment creation")

    # ------------------------------------------------------------------
    # Introspection

    @property
    def step(self) -> Step:
        return self.state.step

    @property
    def busy(self) -> bool:
        """True while a blocking analyze or compose call is outstanding."""
        return self._analyze.busy or self._compose.busy

    @property
    def saved_looks(self) -> tuple[SavedLook, ...]:
        return self.store.items(LOOKS)

    @property
    def saved_measurements(self) -> tuple[SavedMeasurement, ...]:
        return self.store.items(MEASUREMENTS)

    @property
    def photo(self) -> UserPhoto | None:
        return getattr(self.state, "photo", None)

    @property
    def selection(self) -> OutfitSelection:
        return getattr(self.state, "selection", None) or OutfitSelection()

    def presets(self) -> dict[GarmentCategory, list[Preset]]:
        """Quick customization instructions for the current selection."""
        return presets_for(self.selection)

    def dismiss_error(self) -> None:
        self.error = None

    # ------------------------------------------------------------------
    # Guards

    def _expect(self, action: str, *state_types: type) -> Any:
        if not isinstance(self.state, state_types):
            raise TransitionNotAllowed(f"Cannot {action} during the {self.step.value} step.")
        return self.state

    def _ensure_idle(self) -> None:
        if self.busy:
            raise OperationInProgress()
        if isinstance(self.state, CustomizeState) and self.state.history.is_busy:
            raise OperationInProgress("A customization is being applied.")

    def _set_state(self, state: WorkflowState) -> None:
        if state.step != self.state.step:
            logger.info("Step %s -> %s", self.state.step.value, state.step.value)
        self.state = state

    def _next_id(self) -> int:
        """Millisecond timestamp, strictly increasing within this engine."""
        artifact_id = max(int(self._clock() * 1000), self._last_id + 1)
        self._last_id = artifact_id
        return artifact_id

    def _enter_select(self, photo: UserPhoto, height: Height, selection: OutfitSelection) -> None:
        self._set_state(SelectState(photo=photo, height=height, selection=selection))
        self.preview.seed(photo)
        if not selection.is_empty:
            self.preview.update(selection)

    def _fall_back_to_select(self, state: Any, error: Exception, default: str) -> None:
        self.error = _failure_message(error, default)
        logger.warning("%s; returning to selection", self.error)
        self._enter_select(state.photo, state.height, state.selection)

    # ------------------------------------------------------------------
    # Capture & height

    def capture_photo(self, photo: UserPhoto) -> WorkflowState:
        """Accept a normalized photo and move on to the height step."""
        self._expect("take a photo", CaptureState)
        self.error = None
        self._set_state(HeightState(photo=photo))
        return self.state

    def upload_photo(self, data: bytes | str) -> WorkflowState:
        """Normalize an uploaded file (bytes, data URL or base64) and capture it."""
        self._expect("upload a photo", CaptureState)
        return self.capture_photo(photo_from_upload(data))

    def submit_height(self, feet: int | str, inches: int | str) -> WorkflowState:
        state = self._expect("enter a height", HeightState)
        height = validate_height(feet, inches)
        self.error = None
        self._enter_select(state.photo, height, state.selection)
        return self.state

    # ------------------------------------------------------------------
    # Selection & garment creation

    def toggle_garment(self, item: GarmentItem | int) -> OutfitSelection:
        """Select a garment, or clear its slot when it is already selected."""
        self._ensure_idle()
        state = self._expect("change the outfit", SelectState)
        if not isinstance(item, GarmentItem):
            item = self.catalog.get(item)

        selection = state.selection.toggle(item)
        self._set_state(replace(state, selection=selection))
        self.preview.update(selection)
        return selection

    def open_garment_creation(self, category: GarmentCategory | str | None = None) -> GarmentDraft:
        self._expect("create a garment", SelectState)
        self._draft_token += 1
        self.draft = GarmentDraft(category=GarmentCategory(category or GarmentCategory.TOP))
        return self.draft

    def set_creation_category(self, category: GarmentCategory | str) -> GarmentDraft:
        draft = self._require_draft()
        self.draft = replace(draft, category=GarmentCategory(category))
        return self.draft

    def close_garment_creation(self) -> None:
        self._draft_token += 1
        self.draft = None

    async def submit_creation_prompt(self, prompt: str) -> GarmentDraft:
        """Render a garment from a description. Failures land on the draft."""
        draft = self._require_draft()
        if not prompt or not prompt.strip():
            raise InvalidInput("Please enter a description for your clothing item.")

        token = self._draft_token
        with self._create.hold():
            self.draft = replace(draft, prompt=prompt.strip(), image=None, error=None, is_loading=True)
            try:
                image = await self.gateway.create_garment(prompt.strip())
            except Exception as e:
                if token == self._draft_token and self.draft is not None:
                    message = _failure_message(e, "An unknown error occurred.")
                    logger.warning("Garment creation failed: %s", message)
                    self.draft = replace(self.draft, error=message, is_loading=False)
                return self.draft

            if token == self._draft_token and self.draft is not None:
                self.draft = replace(self.draft, image=image, is_loading=False)
        return self.draft

    def use_created_garment(self) -> GarmentItem:
        """Add the generated garment to the catalog and select it."""
        self._expect("use a created garment", SelectState)
        draft = self._require_draft()
        if draft.image is None:
            raise TransitionNotAllowed("No garment has been generated yet.")

        item = GarmentItem(
            id=self._next_id(),
            category=draft.category,
            name=_short_name(draft.prompt),
            image_url=to_data_url(draft.image),
            description=draft.prompt,
        )
        self.catalog.prepend(item)
        self.close_garment_creation()
        logger.info("Created garment %d (%s)", item.id, item.category.value, extra={"image_url": item.image_url})
        self.toggle_garment(item)
        return item

    def _require_draft(self) -> GarmentDraft:
        if self.draft is None:
            raise TransitionNotAllowed("Garment creation is not open.")
        return self.draft

    # ------------------------------------------------------------------
    # Measurement & generation

    async def proceed_to_measure(self) -> WorkflowState:
        """Run the fit analysis for the current selection."""
        self._ensure_idle()
        state = self._expect("analyze the fit", SelectState)
        if state.selection.is_empty:
            raise TransitionNotAllowed("Please select at least one clothing item.")

        epoch = self._epoch
        with self._analyze.hold():
            self.error = None
            self.preview.cancel()
            self.close_garment_creation()
            self._set_state(MeasureState(photo=state.photo, height=state.height, selection=state.selection))
            try:
                analysis = await self.gateway.analyze_fit(
                    state.photo, state.selection.items(), state.height.label
                )
            except Exception as e:
                if epoch == self._epoch:
                    self._fall_back_to_select(state, e, "An unknown error occurred.")
                return self.state

            if epoch != self._epoch:
                logger.info("Discarding fit analysis from an abandoned session")
                return self.state
            self._set_state(replace(self.state, analysis=analysis))
        return self.state

    def save_measurement(self) -> SavedMeasurement | None:
        """Persist the current analysis once. Returns None when already saved."""
        state = self._expect("save measurements", MeasureState)
        if state.analysis is None:
            raise TransitionNotAllowed("The measurements are not ready yet.")
        if state.measurement_saved:
            return None

        entity = SavedMeasurement(
            id=self._next_id(),
            fit_analysis=state.analysis,
            user_image=state.photo,
            selected_outfit=state.selection,
        )
        self.store.save(MEASUREMENTS, entity.id, entity)
        self._set_state(replace(state, saved_measurement_id=entity.id))
        logger.info("Saved measurement %d", entity.id, extra={"measurement_id": entity.id})
        return entity

    async def proceed_to_generate(self) -> WorkflowState:
        """Compose the outfit image. Valid after measuring, or straight from selection."""
        self._ensure_idle()
        state = self._expect("generate the outfit", MeasureState, SelectState)
        if state.selection.is_empty:
            raise TransitionNotAllowed("Please select at least one clothing item.")

        analysis = getattr(state, "analysis", None)
        epoch = self._epoch
        with self._compose.hold():
            self.error = None
            self.preview.cancel()
            self.close_garment_creation()
            self._set_state(GenerateState(
                photo=state.photo, height=state.height, selection=state.selection, analysis=analysis,
            ))
            try:
                image = await self.gateway.compose_preview(state.photo, state.selection.items())
            except Exception as e:
                if epoch == self._epoch:
                    self._fall_back_to_select(state, e, "An unknown error occurred.")
                return self.state

            if epoch != self._epoch:
                logger.info("Discarding composite from an abandoned session")
                return self.state
            self._set_state(CustomizeState(
                photo=state.photo,
                height=state.height,
                selection=state.selection,
                history=EditHistory(image, self.gateway),
                analysis=analysis,
            ))
        return self.state

    # ------------------------------------------------------------------
    # Customization

    async def apply_customization(self, instruction: str) -> str | None:
        """Apply one edit. Returns the new image, or None if the service failed."""
        state = self._expect("customize", CustomizeState)
        epoch = self._epoch
        self.error = None
        try:
            return await state.history.apply_edit(instruction)
        except GatewayError as e:
            if epoch == self._epoch:
                self.error = e.message
                logger.warning("Customization failed: %s", e.message)
            return None

    def undo(self) -> str:
        state = self._expect("undo", CustomizeState)
        self._ensure_idle()
        return state.history.undo()

    def reset(self) -> str:
        state = self._expect("reset", CustomizeState)
        self._ensure_idle()
        return state.history.reset()

    def finalize(self) -> WorkflowState:
        """Freeze the current edit as the final look."""
        state = self._expect("finalize", CustomizeState)
        self._ensure_idle()
        self._set_state(ResultState(
            photo=state.photo,
            height=state.height,
            selection=state.selection,
            final_image=state.history.current(),
            analysis=state.analysis,
        ))
        return self.state

    # ------------------------------------------------------------------
    # Result

    def save_look(self) -> SavedLook | None:
        """Persist the final look once. Returns None when already saved."""
        state = self._expect("save the look", ResultState)
        if state.look_saved:
            return None

        entity = SavedLook(
            id=self._next_id(),
            final_image=state.final_image,
            original_image=state.photo,
            selected_outfit=state.selection,
        )
        self.store.save(LOOKS, entity.id, entity)
        self._set_state(replace(state, saved_look_id=entity.id))
        logger.info("Saved look %d", entity.id, extra={"look_id": entity.id, "final_image": entity.final_image})
        return entity

    def download(self) -> LookExport:
        state = self._expect("download", ResultState)
        return LookExport(
            filename=DOWNLOAD_FILENAME,
            mime_type="image/png",
            data=base64.b64decode(state.final_image),
        )

    # ------------------------------------------------------------------
    # Saved artifacts

    def saved_look(self, look_id: int) -> SavedLook | None:
        return self.store.get(LOOKS, look_id)

    def saved_measurement(self, measurement_id: int) -> SavedMeasurement | None:
        return self.store.get(MEASUREMENTS, measurement_id)

    def delete_look(self, look_id: int) -> tuple[SavedLook, ...]:
        looks = self.store.delete(LOOKS, look_id)
        if isinstance(self.state, ResultState) and self.state.saved_look_id == look_id:
            self._set_state(replace(self.state, saved_look_id=None))
        return looks

    def delete_measurement(self, measurement_id: int) -> tuple[SavedMeasurement, ...]:
        measurements = self.store.delete(MEASUREMENTS, measurement_id)
        if isinstance(self.state, MeasureState) and self.state.saved_measurement_id == measurement_id:
            self._set_state(replace(self.state, saved_measurement_id=None))
        return measurements

    # ------------------------------------------------------------------
    # Navigation

    def back(self) -> WorkflowState:
        """Go to the previous interactive step.

        Height goes back to capture (a full start over); selection keeps the
        outfit when returning to height; measure and customize return to
        selection with the outfit intact.
        """
        self._ensure_idle()
        state = self.state
        if isinstance(state, HeightState):
            return self.start_over()
        if isinstance(state, SelectState):
            self.preview.cancel()
            self.close_garment_creation()
            self._set_state(HeightState(photo=state.photo, selection=state.selection))
            return self.state
        if isinstance(state, (MeasureState, CustomizeState)):
            self._enter_select(state.photo, state.height, state.selection)
            return self.state
        raise TransitionNotAllowed(f"Cannot go back from the {self.step.value} step.")

    def start_over(self) -> WorkflowState:
        """Drop the whole session and return to capture. Always allowed."""
        self._epoch += 1
        self._draft_token += 1
        self._new_slots()
        self.preview.clear()
        self.draft = None
        self.error = None
        self._set_state(CaptureState())
        return self.state

    async def aclose(self) -> None:
        await self.preview.aclose()

    # ------------------------------------------------------------------
    # Serialization

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready view of the session."""
        state = self.state
        photo = self.photo
        data: dict[str, Any] = {
            "step": self.step.value,
            "busy": self.busy,
            "error": self.error,
            "photo_url": photo.url if photo else None,
            "height": state.height.label if hasattr(state, "height") else None,
            "selection": {
                category.value: item.model_dump(mode="json") if item else None
                for category, item in self.selection.as_mapping().items()
            },
        }
        if isinstance(state, SelectState):
            data["preview"] = {
                "image": self.preview.image,
                "loading": self.preview.is_loading,
                "pending": self.preview.is_pending,
            }
        analysis = getattr(state, "analysis", None)
        data["analysis"] = formatted_analysis(analysis).model_dump(mode="json", by_alias=True) if analysis else None
        if isinstance(state, MeasureState):
            data["measurement_saved"] = state.measurement_saved
        if isinstance(state, CustomizeState):
            data["history"] = {
                "length": len(state.history),
                "current": state.history.current(),
                "busy": state.history.is_busy,
                "can_undo": state.history.can_undo,
            }
            data["presets"] = {
                category.value: [preset._asdict() for preset in presets]
                for category, presets in self.presets().items()
            }
        if isinstance(state, ResultState):
            data["final_image"] = state.final_image
            data["look_saved"] = state.look_saved
        if self.draft is not None:
            data["draft"] = {
                "category": self.draft.category.value,
                "prompt": self.draft.prompt,
                "image": self.draft.image,
                "error": self.draft.error,
                "loading": self.draft.is_loading,
            }
        return data
