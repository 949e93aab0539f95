class GenerationError(Exception):
    """Base class for every failure of an image generation call."""


class MissingCredential(GenerationError, ValueError):
    """No API key is configured. Raised before any request is made."""


class UpstreamError(GenerationError):
    """The generation service call itself failed (network, quota, auth)."""


class NoImageReturned(GenerationError):
    """The service responded but no part of the response carried an image."""
