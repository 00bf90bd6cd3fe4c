"""
Error types raised by the signer, the playlist rewriter and the proxy.
"""
from typing import Optional


class SignedPlaylistError(Exception):
    """Base class for all service errors."""


class InvalidRequest(SignedPlaylistError):
    """A required query parameter is missing or unusable."""


class ConfigurationError(SignedPlaylistError):
    """Signing prerequisites (domain, key pair id, private key) are absent or unreadable."""


class OriginFetchError(SignedPlaylistError):
    """The upstream resource could not be fetched or answered with a non-2xx status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class UnsafeReferenceError(ValueError):
    """A relative playlist reference tries to leave the signed directory."""
