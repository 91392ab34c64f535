"""
Document Extraction Service
Pulls plain text and page images out of uploaded documents.

Methods (in order of preference):
1. PyMuPDF (fitz) - text, embedded images, page rendering
2. pypdf - text-only fallback when PyMuPDF cannot open the file
3. Pillow - image uploads (PNG/JPEG/TIFF...) become a one-page document

Extraction never raises to the caller: unreadable input comes back as an
ExtractionFailure so the orchestrator can carry on with the other documents.
"""

import io
import logging
import re
from typing import List, Optional

import fitz  # PyMuPDF
import pypdf
from PIL import Image, UnidentifiedImageError

from app.core.config import get_settings
from app.services.screening.models import (
    ExtractedContent,
    ExtractedImage,
    ExtractionFailure,
    ExtractionOutcome,
    RawDocument,
)

logger = logging.getLogger(__name__)

PASSTHROUGH_IMAGE_TYPES = {"png": "image/png", "jpeg": "image/jpeg", "jpg": "image/jpeg"}

_CID_MARKER = re.compile(r"\(cid:\d+\)", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")
_SYMBOL_RUN = re.compile(r"[!\"#$%&'()*+,\-./0-9:;<=>?@\[\]\\^_`{|}~]{18,}")


def looks_scanned(text: str) -> bool:
    """
    Heuristic for text that came from a scan or a broken font map:
    too short, (cid:N) glyph placeholders, or dominated by symbols.
    """
    cleaned = _CONTROL_CHARS.sub(" ", (text or "").replace("\x00", "")).strip()
    if len(cleaned) < 120:
        return True
    if _CID_MARKER.search(cleaned):
        return True
    if _SYMBOL_RUN.search(cleaned):
        return True

    letters = sum(1 for ch in cleaned if ch.isascii() and ch.isalpha())
    spaces = sum(1 for ch in cleaned if ch.isspace())
    symbols = max(0, len(cleaned) - letters - spaces)
    return symbols / len(cleaned) > 0.33 and letters / len(cleaned) < 0.22


class DocumentExtractor:
    """
    Turns raw document bytes into text plus a bounded list of page images.
    """

    def __init__(
        self,
        max_images: Optional[int] = None,
        render_dpi: Optional[int] = None,
        render_max_pages: Optional[int] = None,
    ):
        settings = get_settings()
        self.max_images = max_images if max_images is not None else settings.pdf_max_images_per_document
        self.render_dpi = render_dpi or settings.pdf_render_dpi
        self.render_max_pages = (
            render_max_pages if render_max_pages is not None else settings.pdf_render_max_pages
        )

    def extract(self, document: RawDocument) -> ExtractionOutcome:
        """Extract one document. Pure transform; safe to run in a worker thread."""
        media_type = (document.media_type or "").lower()
        if not document.content:
            return ExtractionFailure(error="empty document", media_type=media_type)

        if media_type.startswith("image/"):
            return self._extract_image_document(document.content, media_type)

        result = self._extract_pymupdf(document.content)
        if result is not None:
            return result

        result = self._extract_pypdf(document.content)
        if result is not None:
            return result

        return ExtractionFailure(error="unreadable or malformed PDF", media_type=media_type)

    # =========================================================================
    # PDF via PyMuPDF
    # =========================================================================

    def _extract_pymupdf(self, content: bytes) -> Optional[ExtractedContent]:
        try:
            doc = fitz.open(stream=content, filetype="pdf")
        except Exception as e:
            logger.warning("PyMuPDF could not open document: %s", e)
            return None

        try:
            texts: List[str] = []
            images: List[ExtractedImage] = []
            for page_index, page in enumerate(doc):
                texts.append(page.get_text("text"))
                if len(images) < self.max_images:
                    images.extend(self._page_images(doc, page, page_index + 1, self.max_images - len(images)))

            text = "\n\n".join(t.strip() for t in texts if t.strip())
            scanned = looks_scanned(text)
            if scanned and not images:
                images = self._render_pages(doc)

            return ExtractedContent(
                text=text,
                page_count=doc.page_count,
                images=images,
                method_used="pymupdf",
                scanned=scanned,
            )
        except Exception as e:
            logger.warning("PyMuPDF extraction failed: %s", e)
            return None
        finally:
            doc.close()

    def _page_images(self, doc, page, page_number: int, limit: int) -> List[ExtractedImage]:
        """Embedded rasters on one page, normalized to PNG unless already PNG/JPEG."""
        out: List[ExtractedImage] = []
        for info in page.get_images(full=True):
            if len(out) >= limit:
                break
            xref = info[0]
            try:
                extracted = doc.extract_image(xref)
                ext = (extracted.get("ext") or "").lower()
                if ext in PASSTHROUGH_IMAGE_TYPES:
                    out.append(ExtractedImage(page_number, extracted["image"], PASSTHROUGH_IMAGE_TYPES[ext]))
                    continue

                pix = fitz.Pixmap(doc, xref)
                if pix.n - pix.alpha >= 4:
                    # CMYK and friends cannot be written as PNG directly
                    pix = fitz.Pixmap(fitz.csRGB, pix)
                out.append(ExtractedImage(page_number, pix.tobytes("png"), "image/png"))
            except Exception as e:
                logger.warning("Skipping image xref=%s on page %s: %s", xref, page_number, e)
        return out

    def _render_pages(self, doc) -> List[ExtractedImage]:
        """Rasterize leading pages of a scan that carries no embedded images."""
        rendered: List[ExtractedImage] = []
        for page_index in range(min(doc.page_count, self.render_max_pages, self.max_images)):
            try:
                pix = doc[page_index].get_pixmap(dpi=self.render_dpi)
                rendered.append(ExtractedImage(page_index + 1, pix.tobytes("png"), "image/png"))
            except Exception as e:
                logger.warning("Page %s render failed: %s", page_index + 1, e)
        return rendered

    # =========================================================================
    # PDF via pypdf (text only)
    # =========================================================================

    def _extract_pypdf(self, content: bytes) -> Optional[ExtractedContent]:
        try:
            reader = pypdf.PdfReader(io.BytesIO(content))
            texts = [(page.extract_text() or "").strip() for page in reader.pages]
        except Exception as e:
            logger.warning("pypdf extraction failed: %s", e)
            return None

        text = "\n\n".join(t for t in texts if t)
        return ExtractedContent(
            text=text,
            page_count=len(texts),
            images=[],
            method_used="pypdf",
            scanned=looks_scanned(text),
        )

    # =========================================================================
    # Image uploads
    # =========================================================================

    def _extract_image_document(self, content: bytes, media_type: str) -> ExtractionOutcome:
        try:
            with Image.open(io.BytesIO(content)) as img:
                img.load()
                if img.mode not in ("RGB", "RGBA", "L"):
                    img = img.convert("RGB")
                buffer = io.BytesIO()
                img.save(buffer, format="PNG")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.warning("Image document could not be decoded: %s", e)
            return ExtractionFailure(error=f"unreadable image: {e}", media_type=media_type)

        return ExtractedContent(
            text="",
            page_count=1,
            images=[ExtractedImage(1, buffer.getvalue(), "image/png")],
            method_used="pillow",
            scanned=True,
        )


# Singleton instance
_extractor: Optional[DocumentExtractor] = None


def get_document_extractor() -> DocumentExtractor:
    """Get the shared extractor instance."""
    global _extractor
    if _extractor is None:
        _extractor = DocumentExtractor()
    return _extractor
