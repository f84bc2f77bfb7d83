"""Error types surfaced to the user."""

import httpx


class BridgeError(Exception):
    """Base error with a user-facing message."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CredentialError(BridgeError):
    """Missing, malformed or revoked token."""

    kind = "credential"
    REAUTHENTICATE = "Authentication failed. Please re-authenticate with a valid GitHub token."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.REAUTHENTICATE)


class ArchiveError(BridgeError):
    """Archive could not be extracted."""

    kind = "archive"
    default_message = "Failed to process ZIP file. Please ensure it's a valid ZIP archive."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class NotZipFileError(ArchiveError):
    default_message = "Please upload a ZIP file."


class EmptyArchiveError(ArchiveError):
    default_message = "The uploaded file is empty. Please select a valid ZIP file."


class OversizeArchiveError(ArchiveError):
    default_message = "The ZIP file is too large. Please upload a file smaller than 100MB."


class CorruptArchiveError(ArchiveError):
    default_message = (
        "The file appears to be corrupted or incomplete. "
        "Please try re-downloading and uploading the ZIP file."
    )


class EncryptedArchiveError(ArchiveError):
    default_message = (
        "Password-protected ZIP files are not supported. "
        "Please upload an unencrypted ZIP file."
    )


class PublishError(BridgeError):
    """A publish step failed; the branch was left untouched."""

    kind = "publish"

    def __init__(self, step: str, cause: Exception):
        super().__init__(f"Failed to upload files: {describe_error(cause)}")
        self.step = step


class InvalidRequestError(BridgeError):
    kind = "invalid_request"

    def __init__(self, message: str = "Missing required parameters"):
        super().__init__(message)


class TruncatedTreeError(BridgeError):
    """GitHub returned a partial recursive listing of a tree."""

    kind = "truncated_tree"

    def __init__(self, sha: str):
        super().__init__(
            f"The repository tree {sha[:7]} is too large to list completely. "
            "Refusing to rewrite it from a partial listing."
        )
        self.sha = sha


class UnknownActionError(BridgeError):
    kind = "unknown_action"

    def __init__(self, action: str | None):
        super().__init__(f"Unknown action: {action}")
        self.action = action


def describe_error(error: Exception) -> str:
    """Render an upstream error as a short human-readable message."""
    if isinstance(error, BridgeError):
        return error.message
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        return f"GitHub API error: {response.status_code} {response.reason_phrase}"
    if isinstance(error, httpx.TransportError):
        return f"Network error: {error}"
    return str(error)


def is_auth_failure(error: Exception) -> bool:
    return isinstance(error, httpx.HTTPStatusError) and error.response.status_code == 401
