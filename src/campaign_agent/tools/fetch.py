"""Outbound content fetching used by `fetch` proposals."""

from __future__ import annotations

import http.client
import logging
from typing import TYPE_CHECKING, Protocol
from urllib import error, parse, request

from campaign_agent.errors import FetchError

if TYPE_CHECKING:
    from campaign_agent.config.settings import Settings

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}


class Fetcher(Protocol):
    def fetch(self, resource: str) -> str: ...


class HttpFetcher:
    """GET a URL and return its decoded body.

    Bodies longer than ``max_bytes`` are truncated. Any transport or HTTP failure
    raises ``FetchError``; nothing is retried.
    """

    def __init__(
        self,
        *,
        timeout_s: float = 10.0,
        max_bytes: int = 1_000_000,
        user_agent: str = "campaign-agent/0.1",
    ) -> None:
        self.timeout_s = timeout_s
        self.max_bytes = max_bytes
        self.user_agent = user_agent

    def fetch(self, resource: str) -> str:
        scheme = parse.urlsplit(resource).scheme.lower()
        if scheme not in _ALLOWED_SCHEMES:
            raise FetchError(f"Unsupported URL scheme for fetch: {resource!r}")

        req = request.Request(
            url=resource,
            method="GET",
            headers={"User-Agent": self.user_agent, "Accept": "*/*"},
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                raw = response.read(self.max_bytes + 1)
                charset = response.headers.get_content_charset() or "utf-8"
        except error.HTTPError as exc:
            raise FetchError(f"Fetch of {resource} failed with status {exc.code}") from exc
        except error.URLError as exc:
            raise FetchError(f"Fetch of {resource} failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise FetchError(
                f"Fetch of {resource} timed out after {self.timeout_s:.1f}s"
            ) from exc
        except (OSError, http.client.HTTPException) as exc:
            raise FetchError(f"Fetch of {resource} failed: {exc!r}") from exc

        if len(raw) > self.max_bytes:
            logger.info(
                "fetch event=truncated url=%s max_bytes=%d",
                resource,
                self.max_bytes,
            )
            raw = raw[: self.max_bytes]
        try:
            return raw.decode(charset, errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")


def build_fetcher(settings: Settings) -> Fetcher:
    return HttpFetcher(
        timeout_s=settings.fetch_timeout_s,
        max_bytes=settings.fetch_max_bytes,
        user_agent=settings.fetch_user_agent,
    )
