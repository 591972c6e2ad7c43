"""Failure categories raised by the catalog, the blob store and the services on top.

Routes translate these into HTTP status codes; nothing in the services layer
retries on its own.
"""


class ToolVaultError(Exception):
    """Root of every error raised by the tool vault services."""
    pass


class InvalidUploadError(ToolVaultError):
    """Upload is missing its file or a required metadata field."""
    pass


class PayloadTooLargeError(ToolVaultError):
    """Upload exceeded the configured per-object size ceiling."""

    def __init__(self, limit: int):
        super().__init__(f"File exceeds the maximum upload size of {limit} bytes")
        self.limit = limit


class UploadFailedError(ToolVaultError):
    """Blob was written but the catalog insert failed; the blob has been discarded."""
    pass


class ToolNotFoundError(ToolVaultError):
    """No catalog entry exists for the requested id."""

    def __init__(self, tool_id):
        super().__init__(f"Tool {tool_id} not found")
        self.tool_id = tool_id


class BlobMissingError(ToolVaultError):
    """Catalog entry exists but its blob is gone from the store."""

    def __init__(self, tool_id, blob_key: str):
        super().__init__(f"Blob {blob_key!r} for tool {tool_id} is missing from storage")
        self.tool_id = tool_id
        self.blob_key = blob_key


class ConstraintViolationError(ToolVaultError):
    """Catalog rejected a row (empty required field, duplicate blob key)."""
    pass


class BlobTooLargeError(ToolVaultError):
    """Stream being stored ran past its size limit."""

    def __init__(self, limit: int):
        super().__init__(f"Blob exceeds size limit of {limit} bytes")
        self.limit = limit


class BlobNotFoundError(ToolVaultError):
    """No blob is stored under the given key."""
    pass


class StorageError(ToolVaultError):
    """Underlying store failed to read or write."""
    pass


class CatalogStorageError(StorageError):
    pass


class BlobStorageError(StorageError):
    pass
