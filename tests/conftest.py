"""
Case Screening - Shared Test Fixtures
Provides database setup, fake collaborators, and sample documents.
"""

import io
import os
import textwrap
from typing import AsyncGenerator, Dict, List, Optional, Union

import pytest
from httpx import AsyncClient, ASGITransport

# Configure test environment BEFORE importing app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_screening.db"
os.environ["OCR_PROVIDER"] = "none"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["TESTING"] = "true"

import fitz  # PyMuPDF
from PIL import Image

from app.main import app
from app.services.screening.statute_cache import InMemoryStatuteCache
from app.services.screening.statute_resolver import FetchedPage


# =============================================================================
# Sample Content
# =============================================================================

UTAH_THEFT_URL = "https://le.utah.gov/xcode/Title76/Chapter6/76-6-S404.html"

UTAH_THEFT_HTML = """
<html>
<head><title>Utah Code Section 76-6-404</title>
<style>body { font-family: serif; }</style>
<script>console.log("analytics");</script>
</head>
<body>
<div id="secdiv">
<b>76-6-404</b> <b>Theft -- Elements.</b><br>
<p>(1) A person commits theft if the person obtains or exercises unauthorized control over
the property of another with a purpose to deprive the owner of the property.</p>
<p>(2) (a) The value of the property or services taken shall determine the degree of the
offense as provided in Section 76-6-412.</p>
<p>(b) It is not a defense that the actor lacked knowledge of the value of the property
at the time of the theft &amp; the actor is guilty regardless of that knowledge.</p>
<p>(3) Consolidation of theft offenses under this part is permitted where the conduct
constitutes a single criminal episode.</p>
</div>
</body>
</html>
"""

NAVIGATION_HTML = """
<html><body>
<div>Skip to content</div>
<div>Utah State Legislature | Find a Bill | House Bills | Senate Bills | Quick Links</div>
<p>Select a title from the list below to browse the code.</p>
""" + ("<p>Legislative links and menus for visitors of the site.</p>" * 12) + """
</body></html>
"""

WVC_ORDINANCE_HTML = """
<html><body>
<h1>9-1-101 Disorderly Conduct</h1>
<p>A person may not engage in fighting or in violent, tumultuous, or threatening behavior
in any public place within the city. A violation of this section is a class C misdemeanor.</p>
</body></html>
"""

INCIDENT_REPORT = """WEST VALLEY CITY POLICE DEPARTMENT
Case No: 24-123456
Defendant: John Smith

PROBABLE CAUSE STATEMENT
On 03/14/2024 officers responded to a retail store on 3500 South. Loss prevention reported
that the defendant took the victim's wallet and other property from the customer service
counter and left the store without paying. The defendant was stopped in the parking lot and
the stolen property was recovered from his jacket pocket. The owner identified the wallet.
The defendant was booked for theft in violation of Utah Code 76-6-404.

UTAH CRIMINAL HISTORY RECORD
Incident 1 of 2
Offense Tracking # (OTN): 43210987
CHARGE: Theft
Date of Arrest: 01/02/2020
CHARGE: Trespass
Incident 2 of 2
Date of Arrest: 05/06/2021
CHARGE: Retail Theft
"""


# =============================================================================
# Builders
# =============================================================================

def png_bytes(size=(60, 40), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def build_pdf(text: str = "", pages: int = 1, image_pages: Optional[List[int]] = None) -> bytes:
    """
    PDF with `text` wrapped onto the first page(s) and a small PNG on each
    page listed in image_pages (1-based).
    """
    doc = fitz.open()
    lines: List[str] = []
    for paragraph in text.split("\n"):
        lines.extend(textwrap.wrap(paragraph, 100, break_on_hyphens=False) or [""])

    per_page = 60
    chunks = [lines[i:i + per_page] for i in range(0, len(lines), per_page)] or [[]]
    page_total = max(pages, len(chunks))
    for page_index in range(page_total):
        page = doc.new_page()
        chunk = chunks[page_index] if page_index < len(chunks) else []
        if chunk:
            page.insert_text((40, 50), "\n".join(chunk), fontsize=7)
        if image_pages and (page_index + 1) in image_pages:
            page.insert_image(fitz.Rect(400, 700, 460, 740), stream=png_bytes())

    data = doc.tobytes()
    doc.close()
    return data


# =============================================================================
# Fakes
# =============================================================================

class RecordingFetcher:
    """StatuteFetcher returning canned pages and recording every URL."""

    def __init__(self, pages: Optional[Dict[str, Union[FetchedPage, Exception]]] = None):
        self.pages = pages or {}
        self.calls: List[str] = []

    def add(self, url: str, body: str, status_code: int = 200):
        self.pages[url] = FetchedPage(status_code=status_code, body=body, url=url)

    async def fetch(self, url: str) -> FetchedPage:
        self.calls.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return FetchedPage(status_code=404, body="", url=url)
        return page


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture(scope="function", autouse=True)
async def setup_test_database():
    """Create database tables before each test and clean up after."""
    from app.core.database import get_engine, Base
    from app.models import models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def memory_cache() -> InMemoryStatuteCache:
    return InMemoryStatuteCache()


@pytest.fixture
def fetcher() -> RecordingFetcher:
    """Fetcher that knows the Utah theft statute."""
    recording = RecordingFetcher()
    recording.add(UTAH_THEFT_URL, UTAH_THEFT_HTML)
    return recording


@pytest.fixture
def session_factory():
    from app.core.database import get_session_factory
    return get_session_factory()
