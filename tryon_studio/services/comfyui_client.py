"""ComfyUI API client for FLUX 2 Klein image generation."""

import asyncio
import random
import uuid
from pathlib import Path
from typing import Any, Sequence

import httpx

from ..config import ComfyUIConfig, GenerationConfig
from ..logging_config import get_logger
from ..utils.images import detect_mime_type

logger = get_logger(__name__)

_SUFFIXES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


class ComfyUIClient:
    """Client for interacting with ComfyUI's API using a FLUX 2 Klein workflow.

    One workflow serves every studio operation: the number of reference
    images decides what it does. Person + garments composes an outfit, a
    single image plus an instruction edits it, and no reference renders a
    garment from text alone.
    """

    def __init__(
        self,
        config: ComfyUIConfig,
        comfyui_input_dir: Path,
        generation: GenerationConfig | None = None,
    ):
        self.config = config
        self.input_dir = comfyui_input_dir
        self.generation = generation or GenerationConfig()
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def check_connection(self) -> bool:
        """Verify ComfyUI is running and accessible."""
        try:
            response = await self.client.get(f"{self.config.base_url}/system_stats")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def stage_image(self, image_bytes: bytes, name: str | None = None) -> str:
        """Write an image into ComfyUI's input directory.

        Returns the filename (not full path) for use in workflow.
        """
        if name is None:
            suffix = _SUFFIXES.get(detect_mime_type(image_bytes), ".png")
            name = f"studio_{uuid.uuid4().hex[:8]}{suffix}"

        self.input_dir.mkdir(parents=True, exist_ok=True)
        (self.input_dir / name).write_bytes(image_bytes)
        return name

    def _remove_staged(self, filenames: Sequence[str]) -> None:
        """Delete staged inputs once ComfyUI no longer needs them."""
        for name in filenames:
            try:
                (self.input_dir / name).unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not remove staged image %s: %s", name, e)

    async def generate(
        self,
        prompt: str,
        reference_images: Sequence[bytes] = (),
        generation_config: GenerationConfig | None = None,
    ) -> bytes:
        """Run the workflow and return the first output image as PNG bytes.

        Args:
            prompt: Instruction for the model
            reference_images: Image bytes, in the order the prompt refers to them
            generation_config: Optional per-call override of generation settings
        """
        settings = generation_config or self.generation
        seed = settings.seed if settings.seed is not None else self._random_seed()
        filenames: list[str] = []

        try:
            for data in reference_images:
                filenames.append(self.stage_image(data))

            workflow = self._build_workflow(
                prompt=prompt,
                reference_filenames=filenames,
                seed=seed,
                settings=settings,
            )

            prompt_id = await self._queue_prompt(workflow)
            logger.debug("Queued ComfyUI prompt %s with %d references", prompt_id, len(filenames))

            output_images = await self._wait_for_completion(prompt_id)
            if not output_images:
                raise RuntimeError("No images generated")

            return await self._get_image(output_images[0])
        finally:
            self._remove_staged(filenames)

    def _build_workflow(
        self,
        prompt: str,
        reference_filenames: Sequence[str],
        seed: int,
        settings: GenerationConfig,
    ) -> dict[str, Any]:
        """Build a FLUX 2 Klein 9B workflow.

        Each reference image is scaled, VAE-encoded and chained onto both the
        positive and the zeroed negative conditioning through ReferenceLatent
        nodes. The output takes the size of the first reference, or a square
        canvas when there is none.
        """
        workflow: dict[str, Any] = {
            # Models
            "110": {
                "class_type": "UNETLoader",
                "inputs": {
                    "unet_name": "flux-2-klein-9b-fp8.safetensors",
                    "weight_dtype": "default",
                }
            },
            "111": {
                "class_type": "CLIPLoader",
                "inputs": {
                    "clip_name": "qwen_3_8b_fp8mixed.safetensors",
                    "type": "flux2",
                    "device": "default",
                }
            },
            "113": {
                "class_type": "VAELoader",
                "inputs": {
                    "vae_name": "flux2-vae.safetensors",
                }
            },
            # Text encode positive prompt
            "112": {
                "class_type": "CLIPTextEncode",
                "inputs": {
                    "clip": ["111", 0],
                    "text": prompt,
                }
            },
            # Zero out conditioning for negative
            "118": {
                "class_type": "ConditioningZeroOut",
                "inputs": {
                    "conditioning": ["112", 0],
                }
            },
        }

        positive: list[Any] = ["112", 0]
        negative: list[Any] = ["118", 0]
        for index, filename in enumerate(reference_filenames):
            load, scale, encode = f"ref{index}_load", f"ref{index}_scale", f"ref{index}_encode"
            pos, neg = f"ref{index}_positive", f"ref{index}_negative"
            workflow[load] = {
                "class_type": "LoadImage",
                "inputs": {"image": filename},
            }
            workflow[scale] = {
                "class_type": "ImageScaleToTotalPixels",
                "inputs": {
                    "image": [load, 0],
                    "upscale_method": "nearest-exact",
                    "megapixels": settings.megapixels,
                    "resolution_steps": 1,
                }
            }
            workflow[encode] = {
                "class_type": "VAEEncode",
                "inputs": {"pixels": [scale, 0], "vae": ["113", 0]},
            }
            workflow[pos] = {
                "class_type": "ReferenceLatent",
                "inputs": {"conditioning": positive, "latent": [encode, 0]},
            }
            workflow[neg] = {
                "class_type": "ReferenceLatent",
                "inputs": {"conditioning": negative, "latent": [encode, 0]},
            }
            positive, negative = [pos, 0], [neg, 0]

        if reference_filenames:
            # Output takes the first reference's size
            workflow["120"] = {
                "class_type": "GetImageSize",
                "inputs": {"image": ["ref0_scale", 0]},
            }
            width: Any = ["120", 0]
            height: Any = ["120", 1]
        else:
            width = height = settings.garment_size

        workflow.update({
            # Empty latent for generation
            "119": {
                "class_type": "EmptyFlux2LatentImage",
                "inputs": {
                    "width": width,
                    "height": height,
                    "batch_size": 1,
                }
            },
            # Random noise
            "109": {
                "class_type": "RandomNoise",
                "inputs": {
                    "noise_seed": seed,
                }
            },
            # Sampler
            "104": {
                "class_type": "KSamplerSelect",
                "inputs": {
                    "sampler_name": "euler",
                }
            },
            "105": {
                "class_type": "Flux2Scheduler",
                "inputs": {
                    "steps": settings.steps,
                    "width": width,
                    "height": height,
                }
            },
            # CFG Guider with the chained reference conditionings
            "106": {
                "class_type": "CFGGuider",
                "inputs": {
                    "model": ["110", 0],
                    "positive": positive,
                    "negative": negative,
                    "cfg": settings.cfg,
                }
            },
            "107": {
                "class_type": "SamplerCustomAdvanced",
                "inputs": {
                    "noise": ["109", 0],
                    "guider": ["106", 0],
                    "sampler": ["104", 0],
                    "sigmas": ["105", 0],
                    "latent_image": ["119", 0],
                }
            },
            "108": {
                "class_type": "VAEDecode",
                "inputs": {
                    "samples": ["107", 0],
                    "vae": ["113", 0],
                }
            },
            "save": {
                "class_type": "SaveImage",
                "inputs": {
                    "images": ["108", 0],
                    "filename_prefix": "studio_output",
                }
            },
        })
        return workflow

    async def _queue_prompt(self, workflow: dict[str, Any]) -> str:
        """Queue a prompt and return the prompt ID."""
        payload = {
            "prompt": workflow,
            "client_id": str(uuid.uuid4()),
        }

        response = await self.client.post(
            f"{self.config.base_url}/prompt",
            json=payload,
        )

        if response.status_code != 200:
            raise RuntimeError(f"ComfyUI rejected workflow: {response.text[:500]}")

        return response.json()["prompt_id"]

    async def _wait_for_completion(self, prompt_id: str) -> list[dict[str, Any]]:
        """Poll until the prompt completes, return output image info."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.timeout

        while loop.time() < deadline:
            response = await self.client.get(f"{self.config.base_url}/history/{prompt_id}")

            if response.status_code == 200:
                history = response.json()
                if prompt_id in history:
                    outputs = history[prompt_id].get("outputs", {})
                    # Find SaveImage node outputs
                    for node_output in outputs.values():
                        if "images" in node_output:
                            return node_output["images"]

            await asyncio.sleep(self.config.poll_interval)

        raise TimeoutError(f"Generation timed out after {self.config.timeout}s")

    async def _get_image(self, image_info: dict[str, Any]) -> bytes:
        """Retrieve a generated image from ComfyUI."""
        params = {
            "filename": image_info["filename"],
            "subfolder": image_info.get("subfolder", ""),
            "type": image_info.get("type", "output"),
        }

        response = await self.client.get(
            f"{self.config.base_url}/view",
            params=params,
        )
        response.raise_for_status()

        return response.content

    def _random_seed(self) -> int:
        return random.randint(0, 2**32 - 1)

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
