"""FastAPI server for the Virtual Try-On studio.

Exposes every user-facing workflow operation over JSON. Each mutating
endpoint answers with the session snapshot:
- step: the current workflow step
- error: the dismissible gateway error, if any
- plus whatever the step carries (preview, analysis, history, final image)
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tryon_studio import create_studio, WorkflowEngine
from tryon_studio.errors import InvalidInput, OperationInProgress, StudioError, TransitionNotAllowed
from tryon_studio.logging_config import configure_logging, get_logger
from tryon_studio.models import GarmentCategory

logger = get_logger(__name__)

# Initialize studio (will be done on first request)
_studio: WorkflowEngine | None = None


def get_studio() -> WorkflowEngine:
    """Get or create the studio instance."""
    global _studio
    if _studio is None:
        _studio = create_studio()  # Loads from .env automatically via pydantic-settings
    return _studio


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    yield
    if _studio is not None:
        await _studio.aclose()


app = FastAPI(
    title="Try-On Studio API",
    description="Virtual try-on workflow: photo, height, outfit, fit analysis, generation and customization",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


_STATUS = {
    InvalidInput: 422,
    TransitionNotAllowed: 409,
    OperationInProgress: 409,
}


@app.exception_handler(StudioError)
async def studio_error_handler(request: Request, exc: StudioError):
    status = _STATUS.get(type(exc), 400)
    return JSONResponse(status_code=status, content={"success": False, "error": exc.message})


class PhotoRequest(BaseModel):
    """Photo as a base64 data URL (camera frame or uploaded file)."""
    photo: str


class HeightRequest(BaseModel):
    """Feet and inches, as numbers or as the strings typed into the form."""
    feet: int | str
    inches: int | str


class CreationOpenRequest(BaseModel):
    category: GarmentCategory | None = None


class CreationPromptRequest(BaseModel):
    prompt: str


class CustomizeRequest(BaseModel):
    instruction: str


class StudioResponse(BaseModel):
    success: bool
    state: dict
    error: str | None = None


def _respond(studio: WorkflowEngine) -> StudioResponse:
    return StudioResponse(success=studio.error is None, state=studio.snapshot(), error=studio.error)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Try-On Studio API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Detailed health check."""
    studio = get_studio()
    check = getattr(studio.gateway, "check_connection", None)
    comfyui_ok = await check() if check is not None else True

    return {
        "status": "ok" if comfyui_ok else "degraded",
        "comfyui": "connected" if comfyui_ok else "disconnected",
    }


@app.get("/api/state", response_model=StudioResponse)
async def get_state():
    return _respond(get_studio())


@app.get("/api/catalog")
async def get_catalog(category: GarmentCategory | None = None):
    catalog = get_studio().catalog
    items = catalog.by_category(category) if category is not None else catalog
    return [item.model_dump(mode="json") for item in items]


@app.post("/api/photo", response_model=StudioResponse)
async def upload_photo(request: PhotoRequest):
    studio = get_studio()
    studio.upload_photo(request.photo)
    return _respond(studio)


@app.post("/api/height", response_model=StudioResponse)
async def submit_height(request: HeightRequest):
    studio = get_studio()
    studio.submit_height(request.feet, request.inches)
    return _respond(studio)


@app.post("/api/garments/{item_id}/toggle", response_model=StudioResponse)
async def toggle_garment(item_id: int):
    studio = get_studio()
    try:
        studio.toggle_garment(item_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown garment {item_id}")
    return _respond(studio)


@app.post("/api/garments/create/open", response_model=StudioResponse)
async def open_garment_creation(request: CreationOpenRequest):
    studio = get_studio()
    studio.open_garment_creation(request.category)
    return _respond(studio)


@app.post("/api/garments/create", response_model=StudioResponse)
async def submit_creation_prompt(request: CreationPromptRequest):
    studio = get_studio()
    await studio.submit_creation_prompt(request.prompt)
    return _respond(studio)


@app.post("/api/garments/create/use", response_model=StudioResponse)
async def use_created_garment():
    studio = get_studio()
    studio.use_created_garment()
    return _respond(studio)


@app.post("/api/garments/create/close", response_model=StudioResponse)
async def close_garment_creation():
    studio = get_studio()
    studio.close_garment_creation()
    return _respond(studio)


@app.post("/api/measure", response_model=StudioResponse)
async def proceed_to_measure():
    studio = get_studio()
    await studio.proceed_to_measure()
    return _respond(studio)


@app.post("/api/measurements/save", response_model=StudioResponse)
async def save_measurement():
    studio = get_studio()
    studio.save_measurement()
    return _respond(studio)


@app.post("/api/generate", response_model=StudioResponse)
async def proceed_to_generate():
    studio = get_studio()
    await studio.proceed_to_generate()
    return _respond(studio)


@app.post("/api/customize", response_model=StudioResponse)
async def apply_customization(request: CustomizeRequest):
    studio = get_studio()
    await studio.apply_customization(request.instruction)
    return _respond(studio)


@app.post("/api/undo", response_model=StudioResponse)
async def undo():
    studio = get_studio()
    studio.undo()
    return _respond(studio)


@app.post("/api/reset", response_model=StudioResponse)
async def reset():
    studio = get_studio()
    studio.reset()
    return _respond(studio)


@app.post("/api/finalize", response_model=StudioResponse)
async def finalize():
    studio = get_studio()
    studio.finalize()
    return _respond(studio)


@app.post("/api/looks/save", response_model=StudioResponse)
async def save_look():
    studio = get_studio()
    studio.save_look()
    return _respond(studio)


@app.get("/api/download")
async def download():
    export = get_studio().download()
    return Response(
        content=export.data,
        media_type=export.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@app.post("/api/back", response_model=StudioResponse)
async def back():
    studio = get_studio()
    studio.back()
    return _respond(studio)


@app.post("/api/start-over", response_model=StudioResponse)
async def start_over():
    studio = get_studio()
    studio.start_over()
    return _respond(studio)


@app.post("/api/error/dismiss", response_model=StudioResponse)
async def dismiss_error():
    studio = get_studio()
    studio.dismiss_error()
    return _respond(studio)


@app.get("/api/looks")
async def list_looks():
    return [look.model_dump(mode="json") for look in get_studio().saved_looks]


@app.get("/api/looks/{look_id}")
async def get_look(look_id: int):
    look = get_studio().saved_look(look_id)
    if look is None:
        raise HTTPException(status_code=404, detail=f"Unknown look {look_id}")
    return look.model_dump(mode="json")


@app.delete("/api/looks/{look_id}")
async def delete_look(look_id: int):
    looks = get_studio().delete_look(look_id)
    return {"success": True, "count": len(looks)}


@app.get("/api/measurements")
async def list_measurements():
    return [m.model_dump(mode="json") for m in get_studio().saved_measurements]


@app.get("/api/measurements/{measurement_id}")
async def get_measurement(measurement_id: int):
    measurement = get_studio().saved_measurement(measurement_id)
    if measurement is None:
        raise HTTPException(status_code=404, detail=f"Unknown measurement {measurement_id}")
    return measurement.model_dump(mode="json")


@app.delete("/api/measurements/{measurement_id}")
async def delete_measurement(measurement_id: int):
    measurements = get_studio().delete_measurement(measurement_id)
    return {"success": True, "count": len(measurements)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
