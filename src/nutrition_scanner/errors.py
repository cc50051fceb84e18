"""Error kinds surfaced to API clients."""

from fastapi import status

ANALYSIS_FAILED_MESSAGE = (
    "Analisis nutrisi gagal dilakukan. Unggah foto lain dan pastikan semua "
    "makanan terlihat jelas."
)
RATE_LIMITED_MESSAGE = (
    "Layanan sedang sibuk karena terlalu banyak request. Mohon tunggu beberapa "
    "saat dan pastikan yang diupload adalah foto menu makanan."
)
CHAT_FAILED_MESSAGE = "Terjadi kesalahan saat memproses pesan."
CATEGORY_REQUIRED_MESSAGE = "School category is required"
SHARE_CARD_FAILED_MESSAGE = "Failed to generate share card"


class ScannerError(Exception):
    """Base error carrying a user-facing message and HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InputError(ScannerError):
    """A required request field is missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AnalysisFailure(ScannerError):
    """An AI stage produced absent or unparseable output."""

    default_message = ANALYSIS_FAILED_MESSAGE


class RateLimitFailure(ScannerError):
    """The AI provider signalled too many requests."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = RATE_LIMITED_MESSAGE


class AuthFailure(ScannerError):
    """The request has no valid user session."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ValidationFailure(ScannerError):
    """A scan is missing its required school category."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = CATEGORY_REQUIRED_MESSAGE


class PersistenceFailure(ScannerError):
    """The scan store rejected a read, write or delete."""

    default_message = "Failed to save scan"


class ExportFailure(ScannerError):
    """Spreadsheet or share card generation failed."""

    default_message = SHARE_CARD_FAILED_MESSAGE


class ChatFailure(ScannerError):
    """The chat model could not produce a reply."""

    default_message = CHAT_FAILED_MESSAGE


class ScanNotFound(ScannerError):
    """The requested scan does not exist or belongs to another user."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Scan not found"
