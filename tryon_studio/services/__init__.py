"""External services for the try-on studio."""

from .gateway import GenerationGateway
from .comfyui_client import ComfyUIClient
from .generation_gateway import StudioGateway

__all__ = [
    "GenerationGateway",
    "ComfyUIClient",
    "StudioGateway",
]
