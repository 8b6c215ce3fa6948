"""Error taxonomy for the storage engine.

Routes translate these into HTTP responses; nothing here touches the
request layer.
"""


class VaultError(Exception):
    """Base class for all storage engine failures."""
    pass


class ValidationError(VaultError):
    """Upload rejected before any encryption work.

    ``reason`` is one of ``TOO_LARGE``, ``UNSUPPORTED_TYPE`` or ``INVALID``.
    """

    TOO_LARGE = "too_large"
    UNSUPPORTED_TYPE = "unsupported_type"
    INVALID = "invalid"

    def __init__(self, message: str, reason: str = INVALID):
        super().__init__(message)
        self.reason = reason


class BlobWriteError(VaultError):
    """Ciphertext could not be written to the blob store."""
    pass


class BlobReadError(VaultError):
    """Ciphertext could not be read back from the blob store."""
    pass


class DecryptionError(VaultError):
    """Malformed IV, ciphertext length or padding."""
    pass


class PersistenceError(VaultError):
    """Metadata store failure."""
    pass


class NotFoundError(VaultError):
    """No file record with the requested stored name."""
    pass
