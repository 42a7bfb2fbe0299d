"""User photo and height models."""

from pydantic import BaseModel, ConfigDict, Field, computed_field


class UserPhoto(BaseModel):
    """A normalized user photo: base64 payload, MIME type and display handle."""

    model_config = ConfigDict(frozen=True)

    base64: str
    mime_type: str = "image/png"
    url: str = Field(description="Display handle, usually a data URL")


class Height(BaseModel):
    """Body height in feet and inches."""

    model_config = ConfigDict(frozen=True)

    feet: int = Field(ge=3)
    inches: int = Field(ge=0, lt=12)

    @computed_field
    @property
    def label(self) -> str:
        """Display form such as 5'9"."""
        return f"{self.feet}'{self.inches}\""
