"""
Tests for the OCR gateway and its providers, driven through httpx.MockTransport.
"""
import json

import httpx
import pytest

from app.core.config import Settings
from app.services.screening.models import ExtractedImage, OCRFailureReason
from app.services.screening.ocr_gateway import (
    AzureDocumentProvider,
    GoogleVisionProvider,
    OCRGateway,
    build_provider,
)

from conftest import png_bytes


def make_images(count: int):
    return [ExtractedImage(page=i + 1, data=png_bytes()) for i in range(count)]


def vision_gateway(handler, **kwargs) -> OCRGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OCRGateway(provider=GoogleVisionProvider("test-key"), client=client, **kwargs)


# =============================================================================
# Configuration
# =============================================================================

class TestConfiguration:

    def test_disabled_by_default(self):
        assert build_provider(Settings(ocr_provider="none")) is None

    def test_selector_without_key_is_disabled(self):
        assert build_provider(Settings(ocr_provider="google_vision", google_vision_api_key="")) is None
        assert build_provider(Settings(ocr_provider="azure_document", azure_document_endpoint="https://az.test")) is None

    def test_google_provider(self):
        provider = build_provider(Settings(ocr_provider="google_vision", google_vision_api_key="abc"))
        assert isinstance(provider, GoogleVisionProvider)

    def test_azure_provider(self):
        provider = build_provider(Settings(
            ocr_provider="azure_document",
            azure_document_endpoint="https://az.test/",
            azure_document_key="secret",
        ))
        assert isinstance(provider, AzureDocumentProvider)
        assert provider.endpoint == "https://az.test"

    def test_status(self):
        gateway = OCRGateway()
        assert gateway.get_status()["enabled"] is False
        assert gateway.get_status()["provider"] == "none"


# =============================================================================
# Google Vision
# =============================================================================

class TestGoogleVision:

    @pytest.mark.asyncio
    async def test_not_configured(self):
        gateway = OCRGateway()
        result = await gateway.recognize(ExtractedImage(page=3, data=png_bytes()))
        assert result.success is False
        assert result.failure_reason == OCRFailureReason.NOT_CONFIGURED
        assert result.page == 3

    @pytest.mark.asyncio
    async def test_full_text_annotation(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.url.params.get("key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"responses": [{"fullTextAnnotation": {"text": "Case No: 1"}}]})

        result = await vision_gateway(handler).recognize(ExtractedImage(page=2, data=b"img"))

        assert result.success
        assert result.text == "Case No: 1"
        assert result.page == 2
        assert result.provider == "google_vision"
        assert seen["key"] == "test-key"
        assert seen["body"]["requests"][0]["image"]["content"] == "aW1n"
        assert seen["body"]["requests"][0]["features"] == [{"type": "TEXT_DETECTION"}]

    @pytest.mark.asyncio
    async def test_text_annotations_fallback(self):
        def handler(request):
            return httpx.Response(200, json={"responses": [{"textAnnotations": [{"description": "fallback"}]}]})

        result = await vision_gateway(handler).recognize(make_images(1)[0])
        assert result.text == "fallback"

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        result = await vision_gateway(lambda r: httpx.Response(429)).recognize(make_images(1)[0])
        assert result.failure_reason == OCRFailureReason.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_server_error(self):
        result = await vision_gateway(lambda r: httpx.Response(503)).recognize(make_images(1)[0])
        assert result.failure_reason == OCRFailureReason.PROVIDER_ERROR
        assert result.details == "HTTP 503"

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        handler = lambda r: httpx.Response(200, json={"responses": "not-a-list"})
        result = await vision_gateway(handler).recognize(make_images(1)[0])
        assert result.failure_reason == OCRFailureReason.PROVIDER_ERROR

    @pytest.mark.asyncio
    async def test_embedded_error(self):
        handler = lambda r: httpx.Response(200, json={"responses": [{"error": {"code": 3, "message": "bad image"}}]})
        result = await vision_gateway(handler).recognize(make_images(1)[0])
        assert result.failure_reason == OCRFailureReason.PROVIDER_ERROR
        assert result.details == "bad image"

    @pytest.mark.asyncio
    async def test_no_text(self):
        handler = lambda r: httpx.Response(200, json={"responses": [{}]})
        result = await vision_gateway(handler).recognize(make_images(1)[0])
        assert result.success is False

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        result = await vision_gateway(handler).recognize(make_images(1)[0])
        assert result.failure_reason == OCRFailureReason.PROVIDER_ERROR
        assert result.details == "timed out"


# =============================================================================
# Batches
# =============================================================================

class TestRecognizeDocument:

    @pytest.mark.asyncio
    async def test_only_first_eight_images(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"responses": [{"fullTextAnnotation": {"text": "page"}}]})

        results = await vision_gateway(handler).recognize_document(make_images(10))

        assert len(calls) == 8
        assert [r.page for r in results] == list(range(1, 9))

    @pytest.mark.asyncio
    async def test_failures_do_not_abort_batch(self):
        def handler(request):
            content = json.loads(request.content)["requests"][0]["image"]["content"]
            if content == "YmFk":  # b"bad"
                return httpx.Response(500)
            return httpx.Response(200, json={"responses": [{"fullTextAnnotation": {"text": "ok"}}]})

        images = [
            ExtractedImage(page=1, data=b"good"),
            ExtractedImage(page=2, data=b"bad"),
            ExtractedImage(page=3, data=b"good"),
        ]
        results = await vision_gateway(handler).recognize_document(images)

        assert [r.success for r in results] == [True, False, True]

    @pytest.mark.asyncio
    async def test_not_configured_batch(self):
        results = await OCRGateway().recognize_document(make_images(3))
        assert all(r.failure_reason == OCRFailureReason.NOT_CONFIGURED for r in results)

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        assert await OCRGateway().recognize_document([]) == []


# =============================================================================
# Azure Document Intelligence
# =============================================================================

class TestAzureDocument:

    def gateway(self, handler) -> OCRGateway:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = AzureDocumentProvider("https://az.test", "secret", poll_interval=0, max_polls=3)
        return OCRGateway(provider=provider, client=client)

    @pytest.mark.asyncio
    async def test_submit_and_poll(self):
        polls = []

        def handler(request):
            if request.method == "POST":
                assert request.headers["Ocp-Apim-Subscription-Key"] == "secret"
                return httpx.Response(202, headers={"Operation-Location": "https://az.test/operations/1"})
            polls.append(request.url)
            if len(polls) == 1:
                return httpx.Response(200, json={"status": "running"})
            return httpx.Response(200, json={"status": "succeeded", "analyzeResult": {"content": "Incident 1 of 1"}})

        result = await self.gateway(handler).recognize(make_images(1)[0])

        assert result.success
        assert result.text == "Incident 1 of 1"
        assert len(polls) == 2

    @pytest.mark.asyncio
    async def test_missing_operation_location(self):
        result = await self.gateway(lambda r: httpx.Response(202)).recognize(make_images(1)[0])
        assert result.failure_reason == OCRFailureReason.PROVIDER_ERROR

    @pytest.mark.asyncio
    async def test_polling_gives_up(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(202, headers={"Operation-Location": "https://az.test/operations/1"})
            return httpx.Response(200, json={"status": "running"})

        result = await self.gateway(handler).recognize(make_images(1)[0])
        assert result.details == "polling timed out"

    @pytest.mark.asyncio
    async def test_analysis_failed(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(202, headers={"Operation-Location": "https://az.test/operations/1"})
            return httpx.Response(200, json={"status": "failed"})

        result = await self.gateway(handler).recognize(make_images(1)[0])
        assert result.failure_reason == OCRFailureReason.PROVIDER_ERROR
        assert result.details == "analysis failed"
