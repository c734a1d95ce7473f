"""Error taxonomy shared by the curation engine."""
from __future__ import annotations


class CurationError(RuntimeError):
    """Base class for failures that are reported to the user as a notice."""

    kind = "CurationError"


class DecodeError(CurationError):
    """Raised when an uploaded blob cannot be decoded as a raster image."""

    kind = "DecodeError"


class MalformedResponse(CurationError):
    """Raised when structured output from the generator does not parse."""

    kind = "MalformedResponse"


class NoImageReturned(CurationError):
    """Raised when an image-mode call returns no inline image."""

    kind = "NoImageReturned"


class CredentialInvalid(CurationError):
    """Raised when the generator rejects (or lacks) the API credential."""

    kind = "CredentialInvalid"


class GenerationServiceError(CurationError):
    """Raised when the generator fails for any other reason."""

    kind = "GenerationServiceError"


class StorageFull(CurationError):
    """Raised when the archive rejects a write for lack of capacity."""

    kind = "StorageFull"


class ArchiveWriteError(CurationError):
    """Raised when the archive write fails for a reason other than capacity."""

    kind = "ArchiveWriteError"


class CollectionNotFound(KeyError):
    """Raised when a collection id does not exist in the store."""


__all__ = [
    "ArchiveWriteError",
    "CollectionNotFound",
    "CredentialInvalid",
    "CurationError",
    "DecodeError",
    "GenerationServiceError",
    "MalformedResponse",
    "NoImageReturned",
    "StorageFull",
]
