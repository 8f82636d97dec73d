"""
GIF resolution: find an animated illustration for a move from its
reference-site link.

The reference site has no lookup API, so resolution is URL guessing plus
existence probing:

1. Parse `.../<N>balltricks/<TrickSlug>.html` out of the move's link.
2. Build candidate GIF URLs under a fixed base path, most likely naming
   convention first.
3. Probe candidates one at a time (never in parallel), each bounded by a
   timeout. The first candidate that exists wins.
4. If nothing exists, the result is None. That is a normal outcome, not
   an error.

Probing uses a HEAD request, falling back to a streamed GET when the
server refuses HEAD. A candidate counts as found on a 2xx response whose
content type (when present) is an image.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Final, Hashable, Iterable

import httpx

from jugglecards.core import UnparseableSourceError
from jugglecards.core.events import EventBus, GifResolutionEvent

logger = logging.getLogger(__name__)

DEFAULT_GIF_BASE_URL: Final[str] = "https://libraryofjuggling.com/JugglingGifs"
DEFAULT_PROBE_TIMEOUT: Final[float] = 3.0

SOURCE_URL_RE: Final[re.Pattern[str]] = re.compile(r"/(\d+)balltricks/(.+)\.html$")

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_NON_ALNUM_RUN_RE = re.compile(r"[^a-z0-9]+")

# Status codes meaning "this server does not do HEAD here", not "missing".
_HEAD_UNSUPPORTED: Final[frozenset[int]] = frozenset({405, 501})


class ProbeOutcome(enum.Enum):
    FOUND = "found"
    MISSING = "missing"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class TrickSource:
    """Ball count and raw trick slug parsed from a reference URL."""

    ball_count: str
    slug: str

    @property
    def lower(self) -> str:
        return self.slug.lower()

    @property
    def collapsed(self) -> str:
        """Lowercase with every non-alphanumeric character removed."""
        return _NON_ALNUM_RE.sub("", self.lower)

    @property
    def dashed(self) -> str:
        """Lowercase with runs of non-alphanumeric characters turned into '-'."""
        return _NON_ALNUM_RUN_RE.sub("-", self.lower)


@dataclass
class BulkResolveResult:
    """Aggregate result of resolving many moves."""

    resolved: dict[Hashable, str] = field(default_factory=dict)
    failed: list[Hashable] = field(default_factory=list)

    @property
    def resolved_count(self) -> int:
        return len(self.resolved)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def total(self) -> int:
        return self.resolved_count + self.failed_count


def parse_source_url(library_url: str) -> TrickSource:
    """
    Extract ball count and trick slug from a reference page URL.

    Raises:
        UnparseableSourceError: the URL is not a `<N>balltricks/<slug>.html` page.
    """
    match = SOURCE_URL_RE.search(library_url or "")
    if match is None:
        raise UnparseableSourceError(f"Not a trick page URL: {library_url!r}")
    return TrickSource(ball_count=match.group(1), slug=match.group(2))


def candidate_urls(source: TrickSource, base_url: str = DEFAULT_GIF_BASE_URL) -> list[str]:
    """Candidate GIF URLs in priority order, without duplicates."""
    folder = f"{base_url.rstrip('/')}/{source.ball_count}balltricks"
    n = source.ball_count
    ordered = [
        f"{folder}/{source.collapsed}.gif",
        f"{folder}/{source.lower}.gif",
        f"{folder}/{n}ball{source.collapsed}.gif",
        f"{folder}/{n}ball{source.dashed}.gif",
        f"{folder}/{source.slug}.gif",
    ]
    return list(dict.fromkeys(ordered))


class GifResolver:
    """
    Discovers GIF URLs for reference-site trick pages.

    The resolver owns its `httpx.AsyncClient` unless one is injected (tests
    inject a client backed by `httpx.MockTransport`).

    Usage:
        async with GifResolver() as resolver:
            gif = await resolver.resolve("https://libraryofjuggling.com/Tricks/3balltricks/Cascade.html")
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = DEFAULT_GIF_BASE_URL,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        user_agent: str | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = float(timeout)
        self._bus = bus
        self._owns_client = client is None
        if client is None:
            headers = {"User-Agent": user_agent} if user_agent else None
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=headers,
            )
        self._client = client

    async def __aenter__(self) -> GifResolver:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def candidates_for(self, library_url: str) -> list[str]:
        """Candidate URLs for a link; empty if the link cannot be parsed."""
        try:
            source = parse_source_url(library_url)
        except UnparseableSourceError:
            return []
        return candidate_urls(source, self.base_url)

    async def probe(self, url: str) -> ProbeOutcome:
        """Check whether `url` exists, bounded by the resolver timeout."""
        try:
            found = await asyncio.wait_for(self._exists(url), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.debug("Probe timed out: %s", url)
            return ProbeOutcome.TIMEOUT
        except httpx.HTTPError as e:
            logger.debug("Probe failed for %s: %s", url, e)
            return ProbeOutcome.ERROR
        return ProbeOutcome.FOUND if found else ProbeOutcome.MISSING

    async def _exists(self, url: str) -> bool:
        response = await self._client.head(url)
        if response.status_code in _HEAD_UNSUPPORTED:
            async with self._client.stream("GET", url) as streamed:
                return _looks_like_image(streamed)
        return _looks_like_image(response)

    async def resolve(self, library_url: str | None) -> str | None:
        """
        Return the first candidate GIF URL that exists, or None.

        Unparseable links resolve to None without probing anything.
        """
        if not library_url:
            return None
        try:
            source = parse_source_url(library_url)
        except UnparseableSourceError as e:
            logger.info("Skipping GIF resolution: %s", e)
            return None

        candidates = candidate_urls(source, self.base_url)
        logger.debug("Trying %d GIF candidate(s) for %s", len(candidates), library_url)

        for url in candidates:
            outcome = await self.probe(url)
            if outcome is ProbeOutcome.FOUND:
                logger.info("Found GIF for %s: %s", library_url, url)
                return url
            logger.debug("Candidate %s: %s", outcome.value, url)

        logger.info("No GIF found for %s", library_url)
        return None

    async def resolve_many(
        self, items: Iterable[tuple[Hashable, str | None]]
    ) -> BulkResolveResult:
        """
        Resolve many `(key, library_url)` pairs one after another.

        Each item is independent: an unresolvable or failing item is counted
        in `failed` and the batch carries on.
        """
        pending = list(items)
        result = BulkResolveResult()
        await self._emit("started", result, len(pending))

        for key, library_url in pending:
            try:
                gif_url = await self.resolve(library_url)
            except Exception:
                logger.exception("GIF resolution failed for %r", key)
                gif_url = None

            if gif_url:
                result.resolved[key] = gif_url
            else:
                result.failed.append(key)
            await self._emit("progress", result, len(pending), current_name=str(key))

        await self._emit("completed", result, len(pending))
        logger.info(
            "Bulk GIF resolution: %d resolved, %d failed",
            result.resolved_count,
            result.failed_count,
        )
        return result

    async def _emit(
        self, status: str, result: BulkResolveResult, total: int, *, current_name: str = ""
    ) -> None:
        if self._bus is None:
            return
        await self._bus.publish(
            GifResolutionEvent(
                status=status,
                processed=result.total,
                total=total,
                resolved=result.resolved_count,
                failed=result.failed_count,
                current_name=current_name,
            )
        )


def _looks_like_image(response: httpx.Response) -> bool:
    if not response.is_success:
        return False
    content_type = response.headers.get("content-type", "")
    if not content_type:
        return True
    return content_type.split(";", 1)[0].strip().lower().startswith("image/")
