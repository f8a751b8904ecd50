"""Vision Classifier Client - narrow structured questions about an image."""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import VisionConfig
from ..errors import (
    CategorizationFailed,
    ClassificationFailed,
    ExtractionFailed,
    IngestionError,
    MalformedModelResponse,
    SeparationFailed,
)
from ..models import DetectedGarment, GarmentAttributes, PipelineStage, ScenarioType, SourceImage
from ..models.image import sniff_media_type
from .image_fetcher import ImageFetcher


logger = logging.getLogger(__name__)


SCENARIO_PROMPT = """Analyze this clothing photo and determine the scenario:

1. PERSON WEARING CLOTHES: Photo shows a person/model wearing clothing items
2. MULTIPLE ITEMS: Photo shows multiple clothing items laid out (flat-lay) or multiple items without a person
3. SINGLE ITEM: Photo shows only one clothing item

Return ONLY valid JSON:
{
  "scenarioType": "person-wearing" | "multi-item" | "single-item",
  "hasSubject": true/false,
  "itemCount": number (estimate of clothing items visible),
  "confidence": 0.0-1.0
}

NO additional text, ONLY JSON."""


PRIMARY_GARMENT_PROMPT = """This image shows a person wearing clothes. Locate the main/most prominent garment they are wearing.

Return ONLY valid JSON:
{
  "items": [
    {
      "name": "Blue Denim Jacket",
      "type": "shirt|jacket|dress|pants|top|hoodie|sweater|coat",
      "boundingBox": {"x": 0.2, "y": 0.15, "width": 0.6, "height": 0.7},
      "confidence": 0.95
    }
  ]
}

Important:
- boundingBox should frame the GARMENT ONLY (not the entire person)
- x, y are the top-left corner, normalized 0-1
- width, height are dimensions, normalized 0-1
- Return at most one item; return "items": [] if no garment is worn

NO additional text, ONLY JSON."""


GARMENT_BOXES_PROMPT = """Analyze this image for clothing items that should be added to a closet.

For EACH separate, distinct clothing item visible provide a descriptive name, the garment type, a bounding box (normalized 0-1 coordinates) and a confidence score.

Rules:
- Only detect actual clothing garments (not accessories like bags, jewelry, watches)
- Each item should be a separate piece (shirt, pants, jacket, shoes, etc.)
- Provide a bounding box that tightly frames just that garment
- If items overlap, provide your best estimate for individual boxes

Return ONLY valid JSON:
{
  "items": [
    {
      "name": "Blue Denim Jacket",
      "type": "jacket",
      "boundingBox": {"x": 0.1, "y": 0.2, "width": 0.4, "height": 0.5},
      "confidence": 0.95
    }
  ]
}

NO additional text, ONLY JSON."""


CATEGORIZATION_PROMPT = """Analyze this clothing item in detail.

1. Create a descriptive name (include the brand if a logo or label is visible)
2. Specify the exact clothing type (e.g., "button-down oxford shirt" not just "shirt")
3. Assign a category: tops|bottoms|dresses|shoes|accessories|outerwear|jackets|sweaters|skirts|shirts|pants
4. Describe colors, material, style, fit, pattern, best seasons and suitable occasions

Return ONLY valid JSON:
{
  "name": "Blue Oxford Button-Down Shirt",
  "clothingType": "button-down oxford shirt",
  "category": "shirts",
  "brand": null,
  "description": "Classic blue Oxford cotton shirt with a button-down collar.",
  "attributes": {
    "color": "blue",
    "secondaryColors": ["white"],
    "material": "cotton",
    "style": "casual",
    "fit": "regular fit",
    "pattern": "solid",
    "season": ["spring", "summer", "fall"],
    "occasion": ["casual", "work"]
  },
  "confidence": 0.90
}

NO additional text, ONLY JSON."""


class ScenarioResponse(BaseModel):
    """Answer to the scenario query."""

    model_config = ConfigDict(populate_by_name=True)

    scenario_type: ScenarioType = Field(alias="scenarioType")
    has_subject: bool = Field(alias="hasSubject")
    item_count: int = Field(alias="itemCount", ge=0)
    confidence: float = Field(ge=0.0, le=1.0)


class GarmentBoxesResponse(BaseModel):
    """Answer to a bounding-box query."""

    items: list[DetectedGarment]


class CategorizationResponse(BaseModel):
    """Answer to the categorization query."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    category: str
    attributes: GarmentAttributes
    confidence: float = Field(ge=0.0, le=1.0)
    clothing_type: str | None = Field(default=None, alias="clothingType")
    description: str | None = None
    brand: str | None = None


@dataclass(frozen=True)
class VisionQuery:
    """A fixed structured question and the schema its answer must match."""

    name: str
    stage: PipelineStage
    instructions: str
    response_model: type[BaseModel]
    error_type: type[IngestionError]

    @property
    def call(self) -> str:
        return f"vision.{self.name}"


CLASSIFY_SCENARIO = VisionQuery(
    name="classify_scenario",
    stage=PipelineStage.CLASSIFICATION,
    instructions=SCENARIO_PROMPT,
    response_model=ScenarioResponse,
    error_type=ClassificationFailed,
)
LOCATE_PRIMARY_GARMENT = VisionQuery(
    name="locate_primary_garment",
    stage=PipelineStage.EXTRACTION,
    instructions=PRIMARY_GARMENT_PROMPT,
    response_model=GarmentBoxesResponse,
    error_type=ExtractionFailed,
)
DETECT_GARMENTS = VisionQuery(
    name="detect_garments",
    stage=PipelineStage.SEPARATION,
    instructions=GARMENT_BOXES_PROMPT,
    response_model=GarmentBoxesResponse,
    error_type=SeparationFailed,
)
DESCRIBE_GARMENT = VisionQuery(
    name="describe_garment",
    stage=PipelineStage.CATEGORIZATION,
    instructions=CATEGORIZATION_PROMPT,
    response_model=CategorizationResponse,
    error_type=CategorizationFailed,
)


class VisionTransport(Protocol):
    """Sends one image plus instructions to a vision model, returns its text."""

    async def complete(
        self,
        name: str,
        instructions: str,
        image_bytes: bytes,
        media_type: str,
    ) -> str:
        ...


class AgentFrameworkTransport:
    """Vision transport backed by an Azure OpenAI Responses agent."""

    def __init__(self, config: VisionConfig):
        self.config = config
        self._client = None
        self._agents: dict[str, Any] = {}

    def _get_client(self):
        """Lazy init for the Azure OpenAI client."""
        if self._client is None:
            from agent_framework.azure import AzureOpenAIResponsesClient

            kwargs: dict[str, Any] = {}
            if self.config.endpoint:
                kwargs["endpoint"] = self.config.endpoint
            if self.config.deployment:
                kwargs["deployment_name"] = self.config.deployment
            if self.config.api_version:
                kwargs["api_version"] = self.config.api_version
            if self.config.api_key:
                kwargs["api_key"] = self.config.api_key
            else:
                from azure.identity import AzureCliCredential
                kwargs["credential"] = AzureCliCredential()
            self._client = AzureOpenAIResponsesClient(**kwargs)
        return self._client

    def _get_agent(self, name: str, instructions: str):
        """Lazy init, one agent per query."""
        if name not in self._agents:
            self._agents[name] = self._get_client().as_agent(
                name=name,
                instructions=instructions,
            )
        return self._agents[name]

    async def complete(
        self,
        name: str,
        instructions: str,
        image_bytes: bytes,
        media_type: str,
    ) -> str:
        from agent_framework import ChatMessage, DataContent, TextContent

        agent = self._get_agent(name, instructions)
        message = ChatMessage(
            role="user",
            contents=[
                TextContent(text="Analyze this image:"),
                DataContent(data=image_bytes, media_type=media_type),
            ],
        )

        response = await agent.run(message)

        # Extract response text
        response_text = ""
        for msg in response.messages:
            for content in msg.contents:
                if hasattr(content, 'text'):
                    response_text += content.text
        return response_text


def parse_json_response(text: str, query: VisionQuery) -> dict:
    """Parse the JSON object out of a model reply, handling markdown code blocks."""
    text = (text or "").strip()
    if text.startswith("```"):
        lines = text.split("\n")
        # Remove first and last lines (```json and ```)
        text = "\n".join(lines[1:-1])

    match = re.search(r"\{[\s\S]*\}", text)
    if not match:
        raise MalformedModelResponse(
            f"No JSON object in {query.name} response",
            stage=query.stage,
            call=query.call,
        )
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise MalformedModelResponse(
            f"Invalid JSON in {query.name} response: {exc}",
            stage=query.stage,
            call=query.call,
        ) from exc
    if not isinstance(data, dict):
        raise MalformedModelResponse(
            f"Expected a JSON object in {query.name} response",
            stage=query.stage,
            call=query.call,
        )
    return data


class VisionClassifierClient:
    """Asks an external vision model narrow questions with validated answers.

    Every answer is validated against its query's schema; a reply that
    does not fit raises MalformedModelResponse instead of flowing on with
    missing fields. Transport failures and timeouts raise the stage error
    named by the query.
    """

    def __init__(
        self,
        config: VisionConfig,
        transport: VisionTransport | None = None,
        fetcher: ImageFetcher | None = None,
    ):
        self.config = config
        self.transport = transport or AgentFrameworkTransport(config)
        self.fetcher = fetcher or ImageFetcher()

    async def ask(self, image: SourceImage, query: VisionQuery) -> BaseModel:
        """Send one structured query about ``image`` and validate the answer."""
        try:
            image_bytes = await self.fetcher.read(image)
        except IngestionError as exc:
            raise query.error_type(
                f"Could not read image for {query.name}: {exc.message}",
                stage=query.stage,
                call=exc.call,
            ) from exc

        media_type = sniff_media_type(image_bytes, image.media_type)
        logger.debug("Vision query '%s' on %s", query.name, image.describe())

        try:
            text = await asyncio.wait_for(
                self.transport.complete(query.name, query.instructions, image_bytes, media_type),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise query.error_type(
                f"Vision query {query.name} timed out after {self.config.timeout_seconds}s",
                stage=query.stage,
                call=query.call,
            ) from exc
        except IngestionError:
            raise
        except Exception as exc:
            # Provider SDKs raise a wide range of exception types
            raise query.error_type(
                f"Vision query {query.name} failed: {exc}",
                stage=query.stage,
                call=query.call,
            ) from exc

        data = parse_json_response(text, query)
        try:
            return query.response_model.model_validate(data)
        except ValidationError as exc:
            raise MalformedModelResponse(
                f"{query.name} response does not match schema: {exc.error_count()} error(s); "
                f"{exc.errors()[0]['msg']} at {'.'.join(str(p) for p in exc.errors()[0]['loc'])}",
                stage=query.stage,
                call=query.call,
            ) from exc

    async def classify_scenario(self, image: SourceImage) -> ScenarioResponse:
        return await self.ask(image, CLASSIFY_SCENARIO)

    async def locate_primary_garment(self, image: SourceImage) -> GarmentBoxesResponse:
        return await self.ask(image, LOCATE_PRIMARY_GARMENT)

    async def detect_garments(self, image: SourceImage) -> GarmentBoxesResponse:
        return await self.ask(image, DETECT_GARMENTS)

    async def describe_garment(self, image: SourceImage) -> CategorizationResponse:
        return await self.ask(image, DESCRIBE_GARMENT)
