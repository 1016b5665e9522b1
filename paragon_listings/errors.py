"""Error taxonomy for the Paragon feed client."""

from __future__ import annotations


class ParagonError(Exception):
    """Base exception for the listings backend."""


class ValidationError(ParagonError):
    """Caller supplied bad or missing input. Never retried."""


class AuthError(ParagonError):
    """Client-credentials token exchange failed."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class FeedError(ParagonError):
    """Non-2xx, unreachable or unparsable response from the feed."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status: int | None = None,
        body: str | None = None,
        parse_error: bool = False,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.body = body
        self.parse_error = parse_error


class RunawayPaginationError(FeedError):
    """Next-link following exceeded the configured page ceiling."""


class EnrichmentError(ParagonError):
    """Geocoding lookup failed for one address."""
