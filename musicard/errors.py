"""
Service-level exceptions.

Routers translate these into HTTP responses; library code that has a fallback
path catches them (or anything else) and degrades instead of propagating.
"""


class MusiCardError(Exception):
    """Base class for MusiCard service errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ImageValidationError(MusiCardError):
    """Unsupported image type or oversized payload."""

    status_code = 400


class VerifierNotFoundError(MusiCardError):
    """No PKCE code verifier for the presented state; authorization must restart."""

    status_code = 400

    def __init__(self, message: str = "verifier not found"):
        super().__init__(message)


class TokenExchangeError(MusiCardError):
    """The identity provider rejected the authorization code exchange."""

    status_code = 502

    def __init__(self, status: int, details: str):
        self.status = status
        self.details = details
        super().__init__(f"Failed to get access token: {status} - {details}")


class ProviderUnavailableError(MusiCardError):
    """A search provider has no credentials or rejected them."""

    status_code = 503


class BlobStoreError(MusiCardError):
    """The blob object store returned an error."""


class BlobStoreNotConfiguredError(BlobStoreError):
    def __init__(self, message: str = "Blob storage not configured"):
        super().__init__(message)
