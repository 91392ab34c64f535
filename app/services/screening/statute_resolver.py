"""
Statute Resolver
================
Turns a detected citation into statute text.

Flow per (jurisdiction, key):
1. Cache hit -> return it, no network
2. Build the source URL (Utah Legislature / West Valley City municipal code);
   a key that cannot be decomposed is `unsupported`
3. Fetch; 404 -> not_found, 429 -> rate_limited, other failures -> network_error
4. Markup to text, title from the first line
5. Content-sanity check; failures are `parse_error` and never cached
6. Create-only cache write

Utah pages declare the current version in a `versionDefault` script
variable; when present that versioned page is fetched instead, since the
main page is a script shell around it.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol
from urllib.parse import quote

import httpx

from app.core.config import Settings, get_settings
from app.core.utc import utc_now_iso
from app.services.screening.models import (
    Citation,
    Jurisdiction,
    LookupFailureReason,
    StatuteFailure,
    StatuteLookup,
    StatuteRecord,
)
from app.services.screening.statute_cache import StatuteCache
from app.services.screening.statute_text import (
    first_line,
    html_to_text,
    statute_body_html,
    validate_statute_text,
)

logger = logging.getLogger(__name__)

UTAH_KEY_PATTERN = re.compile(r"^(\d{1,3}[a-z]?)-(\d{1,4}[a-z]?)-(.+)$", re.IGNORECASE)
VERSION_DEFAULT_PATTERN = re.compile(r"versionDefault\s*=\s*[\"']([^\"']+)[\"']")
_PAGE_NAME = re.compile(r"[^/]+\.html$")


# =============================================================================
# Fetching
# =============================================================================

@dataclass
class FetchedPage:
    status_code: int
    body: str
    url: str


class StatuteFetcher(Protocol):
    async def fetch(self, url: str) -> FetchedPage:
        """GET the url. May raise httpx.HTTPError (including timeouts)."""
        ...


class HttpStatuteFetcher:
    """httpx-backed fetcher with a bounded timeout."""

    def __init__(self, timeout: float = 20.0, user_agent: Optional[str] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent} if user_agent else {}
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                follow_redirects=True,
            )
        return self._client

    async def fetch(self, url: str) -> FetchedPage:
        response = await self._get_client().get(url)
        return FetchedPage(status_code=response.status_code, body=response.text, url=str(response.url))

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# =============================================================================
# URL building
# =============================================================================

def build_utah_url(normalized_key: str, base_url: str = "https://le.utah.gov/xcode") -> Optional[str]:
    """https://le.utah.gov/xcode/Title58/Chapter37/58-37-S8.html for 58-37-8."""
    match = UTAH_KEY_PATTERN.match(normalized_key)
    if not match:
        return None
    title = match.group(1).upper()
    chapter = match.group(2)
    section = match.group(3)
    return f"{base_url.rstrip('/')}/Title{title}/Chapter{chapter}/{title}-{chapter}-S{section}.html"


def build_wvc_url(normalized_key: str, base_url: str = "https://westvalleycity.municipal.codes/Code") -> Optional[str]:
    if not normalized_key:
        return None
    return f"{base_url.rstrip('/')}/{quote(normalized_key, safe='')}"


def versioned_url(url: str, version: str) -> str:
    return _PAGE_NAME.sub(f"{version}.html", url)


# =============================================================================
# Resolver
# =============================================================================

class StatuteResolver:
    """
    Resolves citations against the statute sources, cache first.

    Usage:
        resolver = StatuteResolver(cache=SqlStatuteCache(get_session_factory()))
        lookup = await resolver.resolve(Jurisdiction.UTAH, "76-6-404")
        if isinstance(lookup, StatuteRecord):
            print(lookup.title)
    """

    def __init__(
        self,
        cache: StatuteCache,
        fetcher: Optional[StatuteFetcher] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.cache = cache
        self.fetcher = fetcher or HttpStatuteFetcher(
            timeout=settings.statute_fetch_timeout_seconds,
            user_agent=settings.statute_user_agent,
        )
        self.utah_base_url = settings.utah_code_base_url
        self.wvc_base_url = settings.wvc_code_base_url
        self.concurrency = max(1, settings.analysis_concurrency)

    def build_url(self, jurisdiction: Jurisdiction, normalized_key: str) -> Optional[str]:
        if jurisdiction == Jurisdiction.UTAH:
            return build_utah_url(normalized_key, self.utah_base_url)
        if jurisdiction == Jurisdiction.WVC:
            return build_wvc_url(normalized_key, self.wvc_base_url)
        return None

    async def resolve(self, jurisdiction: Jurisdiction, normalized_key: str) -> StatuteLookup:
        """Resolve one citation; failures come back as StatuteFailure."""
        if jurisdiction == Jurisdiction.UNKNOWN:
            return StatuteFailure(jurisdiction, normalized_key, LookupFailureReason.UNSUPPORTED,
                                  details="no jurisdiction could be assigned")

        cached = await self.cache.get(jurisdiction, normalized_key)
        if cached is not None:
            logger.debug("Statute cache hit %s:%s", jurisdiction.value, normalized_key)
            return cached

        url = self.build_url(jurisdiction, normalized_key)
        if url is None:
            return StatuteFailure(jurisdiction, normalized_key, LookupFailureReason.UNSUPPORTED,
                                  details="citation does not decompose into title/chapter/section")

        try:
            page = await self.fetcher.fetch(url)
            failure = self._status_failure(jurisdiction, normalized_key, page)
            if failure is not None:
                return failure

            if jurisdiction == Jurisdiction.UTAH:
                page = await self._follow_version(page)
                failure = self._status_failure(jurisdiction, normalized_key, page)
                if failure is not None:
                    return failure
        except httpx.HTTPError as e:
            logger.warning("Statute fetch %s:%s failed: %s", jurisdiction.value, normalized_key, e)
            return StatuteFailure(jurisdiction, normalized_key, LookupFailureReason.NETWORK_ERROR,
                                  details=str(e) or type(e).__name__, url_tried=url)

        text = html_to_text(statute_body_html(page.body))
        if not text:
            return StatuteFailure(jurisdiction, normalized_key, LookupFailureReason.PARSE_ERROR,
                                  details="no text in page", url_tried=page.url)

        problem = validate_statute_text(jurisdiction, text)
        if problem:
            logger.warning("Statute %s:%s rejected: %s", jurisdiction.value, normalized_key, problem)
            return StatuteFailure(jurisdiction, normalized_key, LookupFailureReason.PARSE_ERROR,
                                  details=problem, url_tried=page.url)

        record = StatuteRecord(
            jurisdiction=jurisdiction,
            normalized_key=normalized_key,
            title=first_line(text),
            text=text,
            url=page.url,
            fetched_at_iso=utc_now_iso(),
        )
        await self.cache.put_if_absent(record)
        logger.info("Statute %s:%s fetched (%d chars)", jurisdiction.value, normalized_key, len(text))
        return record

    async def resolve_citations(self, citations: Iterable[Citation]) -> List[StatuteLookup]:
        """Resolve distinct citations concurrently; results follow input order."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(citation: Citation) -> StatuteLookup:
            async with semaphore:
                return await self.resolve(citation.jurisdiction, citation.normalized_key)

        return list(await asyncio.gather(*(run(c) for c in citations)))

    async def _follow_version(self, page: FetchedPage) -> FetchedPage:
        match = VERSION_DEFAULT_PATTERN.search(page.body)
        if not match:
            return page
        target = versioned_url(page.url, match.group(1))
        logger.debug("Following versioned statute page %s", target)
        return await self.fetcher.fetch(target)

    @staticmethod
    def _status_failure(jurisdiction: Jurisdiction, normalized_key: str, page: FetchedPage) -> Optional[StatuteFailure]:
        if 200 <= page.status_code < 300:
            return None
        if page.status_code == 404:
            reason = LookupFailureReason.NOT_FOUND
        elif page.status_code == 429:
            reason = LookupFailureReason.RATE_LIMITED
        else:
            reason = LookupFailureReason.NETWORK_ERROR
        return StatuteFailure(jurisdiction, normalized_key, reason,
                              details=f"HTTP {page.status_code}", url_tried=page.url)
