class StoreError(Exception):
    """Base exception for object store failures."""


class CodecError(StoreError):
    """Raised when bytes cannot be encoded or decoded by the binary codec."""


class NotEncodableError(StoreError):
    """Raised when an object does not implement the Encodable capability."""


class InvalidNameError(StoreError):
    """Raised when an object name cannot be used as part of a file name."""


class ManifestError(StoreError):
    """Raised when the persistent tracker cannot be read or written."""


class ManifestCorruptError(ManifestError):
    """Raised when the tracker file exists but does not decode to a manifest."""
