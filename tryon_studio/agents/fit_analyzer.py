"""Fit Analyzer - estimates body measurements and garment fit from a photo."""

import base64
import binascii
import json
from typing import Sequence

from pydantic import ValidationError

from ..errors import GatewayError
from ..logging_config import get_logger
from ..models import FitAnalysis, GarmentItem, UserPhoto

logger = get_logger(__name__)


FIT_ANALYSIS_PROMPT = """You are an expert tailor. From a full-body photo of a person, their height (when given) and a list of clothing items, estimate the person's body measurements and describe how each item would fit them.

Return a JSON object with exactly this shape:
{
  "personMeasurements": {
    "measurements": [{"name": "Chest", "value": "38"}, {"name": "Waist", "value": "32"}],
    "notes": "short notes on body shape and how confident the estimate is"
  },
  "clothingFit": [
    {
      "itemName": "the item name as given",
      "itemType": "Top | Pants | Shoes | Accessory",
      "fitDescription": "how this item fits this person and which size to pick",
      "garmentMeasurements": [{"name": "Length", "value": "28"}]
    }
  ]
}

Measurement values are numbers in inches without units, or short text when a number makes no sense (e.g. shoe size "US 10").
Include one clothingFit entry per item, in the order given.
Return ONLY the JSON object, no explanation."""


class FitAnalyzer:
    """Runs the measurement analysis through an Azure OpenAI vision agent."""

    def __init__(self, endpoint: str | None = None, deployment: str | None = None):
        self.endpoint = endpoint
        self.deployment = deployment
        self._client = None
        self._agent = None

    def _get_agent(self):
        """Lazy init for the analysis agent."""
        if self._agent is None:
            from azure.identity import AzureCliCredential
            from agent_framework.azure import AzureOpenAIResponsesClient

            kwargs = {}
            if self.endpoint:
                kwargs["endpoint"] = self.endpoint
            if self.deployment:
                kwargs["deployment_name"] = self.deployment
            self._client = AzureOpenAIResponsesClient(
                credential=AzureCliCredential(),
                **kwargs,
            )
            self._agent = self._client.as_agent(
                name="FitAnalyzer",
                instructions=FIT_ANALYSIS_PROMPT,
            )
        return self._agent

    def _build_request(self, items: Sequence[GarmentItem], height: str | None) -> str:
        lines = [f"Height: {height}" if height else "Height: unknown"]
        lines.append("Clothing items:")
        for item in items:
            line = f"- {item.name} ({item.category.value})"
            if item.description:
                line += f": {item.description}"
            lines.append(line)
        return "\n".join(lines)

    def _build_message(
        self,
        image_bytes: bytes,
        mime_type: str,
        items: Sequence[GarmentItem],
        height: str | None,
    ):
        from agent_framework import ChatMessage, Content

        return ChatMessage(
            role="user",
            contents=[
                Content.from_text(self._build_request(items, height)),
                Content.from_data(data=image_bytes, media_type=mime_type),
            ],
        )

    def _parse_json_response(self, text: str) -> dict:
        """Parse JSON from LLM response, handling markdown code blocks."""
        text = text.strip()
        if text.startswith("```"):
            lines = text.split("\n")
            # Remove first and last lines (```json and ```)
            text = "\n".join(lines[1:-1])

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    async def analyze(
        self,
        photo: UserPhoto,
        items: Sequence[GarmentItem],
        height: str | None = None,
    ) -> FitAnalysis:
        """Estimate measurements for the person in ``photo`` wearing ``items``.

        Raises:
            GatewayError: if the photo cannot be sent or the reply is not a
                valid analysis.
        """
        try:
            image_bytes = base64.b64decode(photo.base64)
        except (binascii.Error, ValueError) as e:
            raise GatewayError("The photo could not be decoded for analysis.") from e

        agent = self._get_agent()
        message = self._build_message(image_bytes, photo.mime_type, items, height)

        response = await agent.run(message)

        # Extract response text
        response_text = ""
        for msg in response.messages:
            for content in msg.contents:
                text = getattr(content, 'text', None)
                if text:
                    response_text += text

        data = self._parse_json_response(response_text)
        try:
            return FitAnalysis.model_validate(data)
        except ValidationError as e:
            logger.warning("Fit analysis reply did not validate: %s", e.error_count())
            raise GatewayError("The measurement analysis returned an unreadable result.") from e
