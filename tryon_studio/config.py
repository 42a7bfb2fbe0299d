"""Configuration management for the try-on studio."""

from pathlib import Path
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class ComfyUIConfig(BaseModel):
    """ComfyUI connection settings."""
    host: str = "127.0.0.1"
    port: int = 8188
    timeout: float = 300.0  # Generation can take minutes on a cold start
    poll_interval: float = 0.5

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class GenerationConfig(BaseModel):
    """Image generation settings."""
    steps: int = 4  # Distilled model
    cfg: float = 1.0
    seed: int | None = None  # None = random
    megapixels: float = 1.0
    garment_size: int = 1024  # Canvas edge for text-to-garment renders


class PreviewConfig(BaseModel):
    """Live preview settings."""
    settle_delay: float = Field(default=0.8, ge=0.0)  # Seconds after the last toggle


class StorageConfig(BaseModel):
    """Saved looks / measurements storage."""
    data_dir: Path = Path("output/studio")


class StudioConfig(BaseSettings):
    """Main studio configuration."""

    # Paths
    comfyui_input_dir: Path = Path("ComfyUI/input")
    catalog_path: Path | None = None  # None = bundled sample catalog

    # Sub-configs
    comfyui: ComfyUIConfig = Field(default_factory=ComfyUIConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    preview: PreviewConfig = Field(default_factory=PreviewConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # Azure OpenAI (loaded from .env)
    azure_openai_endpoint: str | None = None
    azure_openai_deployment: str | None = None

    class Config:
        env_file = ".env"
        env_prefix = "TRYON_"
        env_nested_delimiter = "__"
        extra = "ignore"


def load_config() -> StudioConfig:
    """Load configuration from environment and defaults."""
    return StudioConfig()
