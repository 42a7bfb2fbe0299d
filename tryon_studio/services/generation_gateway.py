"""Generation gateway backed by ComfyUI (images) and Azure OpenAI (fit analysis)."""

import base64
import binascii
import contextlib
from typing import Iterator, Sequence
from urllib.parse import urlparse

import httpx

from ..agents import FitAnalyzer, OutfitPromptBuilder
from ..config import StudioConfig
from ..errors import GatewayError
from ..logging_config import get_logger
from ..models import FitAnalysis, GarmentItem, UserPhoto
from ..utils.images import decode_image
from .comfyui_client import ComfyUIClient

logger = get_logger(__name__)

# Browser-like headers help with retailer hotlink protection
_DOWNLOAD_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


@contextlib.contextmanager
def _as_gateway_error(action: str) -> Iterator[None]:
    """Translate transport and service failures into GatewayError."""
    try:
        yield
    except GatewayError:
        raise
    except (httpx.HTTPError, TimeoutError, RuntimeError, ValueError, OSError) as e:
        logger.warning("%s: %s", action, e)
        raise GatewayError(f"{action}: {e}") from e


class StudioGateway:
    """The GenerationGateway used in production.

    Compose, edit and garment creation all run the same ComfyUI workflow with
    a different set of reference images. Fit analysis goes to a vision agent.
    """

    def __init__(
        self,
        config: StudioConfig,
        comfyui: ComfyUIClient | None = None,
        analyzer: FitAnalyzer | None = None,
        prompts: OutfitPromptBuilder | None = None,
    ):
        self.config = config
        self.comfyui = comfyui or ComfyUIClient(
            config=config.comfyui,
            comfyui_input_dir=config.comfyui_input_dir,
            generation=config.generation,
        )
        self.analyzer = analyzer or FitAnalyzer(
            endpoint=config.azure_openai_endpoint,
            deployment=config.azure_openai_deployment,
        )
        self.prompts = prompts or OutfitPromptBuilder()
        self._http: httpx.AsyncClient | None = None

    @property
    def http(self) -> httpx.AsyncClient:
        """HTTP client for downloading catalog garment images."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=30.0, follow_redirects=True)
        return self._http

    async def check_connection(self) -> bool:
        return await self.comfyui.check_connection()

    async def compose_preview(self, photo: UserPhoto, items: Sequence[GarmentItem]) -> str:
        with _as_gateway_error("Failed to generate the outfit"):
            person = decode_image(photo.base64)
            garments = [await self._garment_bytes(item) for item in items]
            image = await self.comfyui.generate(
                prompt=self.prompts.compose(items),
                reference_images=[person, *garments],
            )
        return base64.b64encode(image).decode("utf-8")

    async def analyze_fit(
        self,
        photo: UserPhoto,
        items: Sequence[GarmentItem],
        height: str | None = None,
    ) -> FitAnalysis:
        with _as_gateway_error("Failed to analyze the fit"):
            return await self.analyzer.analyze(photo, items, height)

    async def apply_edit(self, image: str, instruction: str) -> str:
        with _as_gateway_error("Failed to apply customization"):
            result = await self.comfyui.generate(
                prompt=self.prompts.edit(instruction),
                reference_images=[decode_image(image)],
            )
        return base64.b64encode(result).decode("utf-8")

    async def create_garment(self, prompt: str) -> str:
        with _as_gateway_error("Failed to create the clothing item"):
            result = await self.comfyui.generate(prompt=self.prompts.garment(prompt))
        return base64.b64encode(result).decode("utf-8")

    async def _garment_bytes(self, item: GarmentItem) -> bytes:
        """Image bytes for a garment given as a data URL or an http(s) URL."""
        if item.image_url.startswith("data:"):
            try:
                return decode_image(item.image_url)
            except binascii.Error as e:
                raise GatewayError(f"Garment '{item.name}' has an unreadable image") from e

        parsed = urlparse(item.image_url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        headers = {**_DOWNLOAD_HEADERS, "Referer": origin + "/", "Origin": origin}

        response = await self.http.get(item.image_url, headers=headers)
        response.raise_for_status()
        return response.content

    async def close(self):
        await self.comfyui.close()
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
            self._http = None
