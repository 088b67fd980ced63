from __future__ import annotations


class EncyclopediaFetchError(Exception):
    """Base error for any failed request against the encyclopedia API."""


class NetworkError(EncyclopediaFetchError):
    """Transport failure or an HTTP error status."""


class MalformedResponseError(EncyclopediaFetchError):
    """Response body is not JSON or lacks the expected query shape."""


class ImageLoadError(Exception):
    """A thumbnail URL could not be retrieved as an image."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason
