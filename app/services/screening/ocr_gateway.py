"""
OCR Gateway
===========
Optional text recognition for page images, through one external provider:

1. Google Cloud Vision (OCR_PROVIDER=google_vision, GOOGLE_VISION_API_KEY)
2. Azure Document Intelligence (OCR_PROVIDER=azure_document,
   AZURE_DOCUMENT_ENDPOINT + AZURE_DOCUMENT_KEY)

Disabled unless both the selector and its credential are set. Only the
first N images of a document are submitted (OCR_MAX_IMAGES_PER_DOCUMENT,
default 8). Every failure comes back as an OCRResult with a failure reason;
nothing here raises to the pipeline.
"""

import asyncio
import base64
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.core.config import Settings, get_settings
from app.services.screening.models import ExtractedImage, OCRFailureReason

logger = logging.getLogger(__name__)


# =============================================================================
# Result
# =============================================================================

@dataclass
class OCRResult:
    """Recognized text for one image, or why there is none."""
    text: str = ""
    provider: str = "none"
    page: int = 0
    failure_reason: Optional[OCRFailureReason] = None
    details: Optional[str] = None
    processing_time_ms: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.failure_reason is None and bool(self.text.strip())

    @classmethod
    def failed(cls, reason: OCRFailureReason, provider: str, details: Optional[str] = None) -> "OCRResult":
        return cls(provider=provider, failure_reason=reason, details=details)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "provider": self.provider,
            "page": self.page,
            "success": self.success,
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
            "details": self.details,
            "processing_time_ms": self.processing_time_ms,
        }


# =============================================================================
# Provider response schemas (strict; anything else is a provider_error)
# =============================================================================

class _StrictModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore")


class VisionText(_StrictModel):
    text: str = ""


class VisionAnnotation(_StrictModel):
    description: str = ""


class VisionError(_StrictModel):
    code: int = 0
    message: str = ""


class VisionImageResponse(_StrictModel):
    fullTextAnnotation: Optional[VisionText] = None
    textAnnotations: List[VisionAnnotation] = Field(default_factory=list)
    error: Optional[VisionError] = None


class VisionAnnotateResponse(_StrictModel):
    responses: List[VisionImageResponse] = Field(default_factory=list)


class AzureAnalyzeResult(_StrictModel):
    content: str = ""


class AzureAnalyzeResponse(_StrictModel):
    status: str
    analyzeResult: Optional[AzureAnalyzeResult] = None


# =============================================================================
# Providers
# =============================================================================

class RecognitionProvider(ABC):
    """One external OCR backend."""

    name: str = "base"

    @abstractmethod
    async def recognize(self, client: httpx.AsyncClient, image: ExtractedImage) -> OCRResult:
        """Recognize text in a single image."""


class GoogleVisionProvider(RecognitionProvider):
    """Cloud Vision images:annotate with TEXT_DETECTION."""

    name = "google_vision"
    ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"

    def __init__(self, api_key: str):
        self.api_key = api_key

    async def recognize(self, client: httpx.AsyncClient, image: ExtractedImage) -> OCRResult:
        body = {
            "requests": [{
                "image": {"content": base64.b64encode(image.data).decode("ascii")},
                "features": [{"type": "TEXT_DETECTION"}],
            }]
        }
        response = await client.post(self.ENDPOINT, params={"key": self.api_key}, json=body)

        if response.status_code == 429:
            return OCRResult.failed(OCRFailureReason.RATE_LIMITED, self.name, "HTTP 429")
        if not response.is_success:
            return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, f"HTTP {response.status_code}")

        try:
            parsed = VisionAnnotateResponse.model_validate_json(response.content)
        except ValidationError as e:
            return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, f"unexpected response shape: {e.error_count()} errors")

        first = parsed.responses[0] if parsed.responses else None
        if first is None:
            return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, "empty response")
        if first.error and first.error.message:
            return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, first.error.message)

        text = ""
        if first.fullTextAnnotation and first.fullTextAnnotation.text:
            text = first.fullTextAnnotation.text
        elif first.textAnnotations:
            text = first.textAnnotations[0].description

        if not text.strip():
            return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, "no text detected")
        return OCRResult(text=text, provider=self.name)


class AzureDocumentProvider(RecognitionProvider):
    """Azure Document Intelligence prebuilt-read: submit, then poll Operation-Location."""

    name = "azure_document"
    API_VERSION = "2023-07-31"

    def __init__(self, endpoint: str, key: str, poll_interval: float = 1.0, max_polls: int = 30):
        self.endpoint = endpoint.rstrip("/")
        self.key = key
        self.poll_interval = poll_interval
        self.max_polls = max_polls

    async def recognize(self, client: httpx.AsyncClient, image: ExtractedImage) -> OCRResult:
        analyze_url = (
            f"{self.endpoint}/formrecognizer/documentModels/prebuilt-read:analyze"
            f"?api-version={self.API_VERSION}"
        )
        response = await client.post(
            analyze_url,
            headers={
                "Ocp-Apim-Subscription-Key": self.key,
                "Content-Type": "application/octet-stream",
            },
            content=image.data,
        )
        if response.status_code == 429:
            return OCRResult.failed(OCRFailureReason.RATE_LIMITED, self.name, "HTTP 429")
        if response.status_code != 202:
            return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, f"HTTP {response.status_code}")

        operation_url = response.headers.get("Operation-Location")
        if not operation_url:
            return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, "missing Operation-Location")

        for _ in range(self.max_polls):
            await asyncio.sleep(self.poll_interval)
            poll = await client.get(operation_url, headers={"Ocp-Apim-Subscription-Key": self.key})
            if poll.status_code == 429:
                return OCRResult.failed(OCRFailureReason.RATE_LIMITED, self.name, "HTTP 429 while polling")
            if not poll.is_success:
                return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, f"HTTP {poll.status_code} while polling")
            try:
                parsed = AzureAnalyzeResponse.model_validate_json(poll.content)
            except ValidationError as e:
                return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, f"unexpected response shape: {e.error_count()} errors")

            if parsed.status == "succeeded":
                text = parsed.analyzeResult.content if parsed.analyzeResult else ""
                if not text.strip():
                    return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, "no text detected")
                return OCRResult(text=text, provider=self.name)
            if parsed.status == "failed":
                return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, "analysis failed")

        return OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.name, "polling timed out")


def build_provider(settings: Settings) -> Optional[RecognitionProvider]:
    """The configured provider, or None when OCR is not fully configured."""
    if not settings.ocr_enabled:
        return None
    if settings.ocr_provider == "google_vision":
        return GoogleVisionProvider(settings.google_vision_api_key)
    if settings.ocr_provider == "azure_document":
        return AzureDocumentProvider(settings.azure_document_endpoint, settings.azure_document_key)
    return None


# =============================================================================
# Gateway
# =============================================================================

class OCRGateway:
    """
    Submits page images to the configured provider.

    Usage:
        gateway = OCRGateway.from_settings()
        results = await gateway.recognize_document(content.images)
        for result in results:
            if result.success:
                print(result.page, result.text)
    """

    def __init__(
        self,
        provider: Optional[RecognitionProvider] = None,
        timeout: float = 30.0,
        max_images: int = 8,
        concurrency: int = 4,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.provider = provider
        self.timeout = timeout
        self.max_images = max_images
        self.concurrency = max(1, concurrency)
        self._client = client

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> "OCRGateway":
        settings = settings or get_settings()
        return cls(
            provider=build_provider(settings),
            timeout=settings.ocr_timeout_seconds,
            max_images=settings.ocr_max_images_per_document,
            concurrency=settings.analysis_concurrency,
            client=client,
        )

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    @property
    def provider_name(self) -> str:
        return self.provider.name if self.provider else "none"

    def get_status(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "provider": self.provider_name,
            "max_images_per_document": self.max_images,
            "timeout_seconds": self.timeout,
        }

    async def recognize(self, image: ExtractedImage, client: Optional[httpx.AsyncClient] = None) -> OCRResult:
        """Recognize one image; never raises."""
        if self.provider is None:
            result = OCRResult.failed(OCRFailureReason.NOT_CONFIGURED, "none")
            result.page = image.page
            return result

        start = time.monotonic()
        try:
            if client is not None:
                result = await self.provider.recognize(client, image)
            elif self._client is not None:
                result = await self.provider.recognize(self._client, image)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as own_client:
                    result = await self.provider.recognize(own_client, image)
        except httpx.TimeoutException:
            result = OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.provider_name, "timed out")
        except httpx.HTTPError as e:
            result = OCRResult.failed(OCRFailureReason.PROVIDER_ERROR, self.provider_name, str(e) or type(e).__name__)

        result.page = image.page
        result.processing_time_ms = int((time.monotonic() - start) * 1000)
        if not result.success:
            logger.warning(
                "OCR page %s via %s failed: %s (%s)",
                image.page, self.provider_name,
                result.failure_reason.value if result.failure_reason else "empty", result.details,
            )
        return result

    async def recognize_document(self, images: List[ExtractedImage]) -> List[OCRResult]:
        """
        OCR the first max_images images concurrently.
        Results come back in the same order as the images.
        """
        batch = images[: self.max_images]
        if not batch:
            return []
        if self.provider is None:
            return [await self.recognize(image) for image in batch]

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(image: ExtractedImage, client: httpx.AsyncClient) -> OCRResult:
            async with semaphore:
                return await self.recognize(image, client)

        if self._client is not None:
            return list(await asyncio.gather(*(run(image, self._client) for image in batch)))
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return list(await asyncio.gather(*(run(image, client) for image in batch)))
