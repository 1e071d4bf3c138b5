"""
Error taxonomy for the letter pipeline.

Compose failures that abort a send derive from ComposeError so callers can
tell them apart by type or by ``code``. Storage failures carry the bucket and
path involved. Asset policy rejections are not exceptions; see
``letterbox.services.asset_validator``.
"""

from typing import Optional


class LetterboxError(Exception):
    """Base exception for the letterbox package."""

    code = "letterbox_error"
    # Caused by the caller's input rather than a fault in the service
    client_error = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ComposeError(LetterboxError):
    """A send was aborted."""

    code = "compose_error"


class EmptyBodyError(ComposeError):
    """Letter body is empty after trimming."""

    code = "empty_body"
    client_error = True

    def __init__(self, message: str = "Letter body must not be empty"):
        super().__init__(message)


class NoRecipientError(ComposeError):
    """No counterpart could be resolved for the sender."""

    code = "no_recipient"
    client_error = True

    def __init__(self, sender_id: str, recipient_id: Optional[str] = None):
        if recipient_id:
            message = f"Recipient {recipient_id} is not a valid counterpart for {sender_id}"
        else:
            message = f"No recipient found for {sender_id}"
        super().__init__(message)
        self.sender_id = sender_id
        self.recipient_id = recipient_id


class PersistenceError(ComposeError):
    """The letter store rejected or could not complete a write."""

    code = "persistence_error"

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class LetterNotFoundError(LetterboxError):
    """Letter does not exist or is not visible to the acting principal."""

    code = "letter_not_found"
    client_error = True

    def __init__(self, letter_id: str):
        super().__init__(f"Letter not found: {letter_id}")
        self.letter_id = letter_id


class StorageError(LetterboxError):
    """Blob store failure."""

    code = "storage_error"
    action = "Storage operation"

    def __init__(self, bucket: str, path: str, original_error: Optional[Exception] = None):
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"{self.action} failed for {bucket}/{path}{detail}")
        self.bucket = bucket
        self.path = path
        self.original_error = original_error


class StorageWriteError(StorageError):
    code = "storage_write_error"
    action = "Write"


class StorageReadError(StorageError):
    code = "storage_read_error"
    action = "Signing"
