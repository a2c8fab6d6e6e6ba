"""Error taxonomy for the mutation pipeline.

Failures are classified once, where they enter the pipeline, into a
MutationError value that travels with the queue entry as `last_error`.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    """Classified failure kind."""

    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION"
    RATE_LIMIT = "RATE_LIMIT"
    SERVER_ERROR = "SERVER_ERROR"
    OFFLINE = "OFFLINE"
    UNKNOWN = "UNKNOWN"

    @property
    def retryable(self) -> bool:
        """Resubmitting the same payload may succeed."""
        return self in _RETRYABLE

    @property
    def requires_reload(self) -> bool:
        """The caller must reload state before resubmitting."""
        return self in _RELOAD

    @property
    def should_wait(self) -> bool:
        return self is ErrorKind.RATE_LIMIT

    @property
    def escalates(self) -> bool:
        """The failure invalidates the session and leaves the pipeline."""
        return self is ErrorKind.UNAUTHORIZED


_RETRYABLE = frozenset({
    ErrorKind.NETWORK,
    ErrorKind.TIMEOUT,
    ErrorKind.SERVER_ERROR,
    ErrorKind.OFFLINE,
})

_RELOAD = frozenset({
    ErrorKind.CONFLICT,
    ErrorKind.NOT_FOUND,
    ErrorKind.VALIDATION,
})

USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Tidak dapat terhubung ke server. Periksa koneksi internet Anda.",
    ErrorKind.TIMEOUT: "Permintaan membutuhkan waktu terlalu lama. Silakan coba lagi.",
    ErrorKind.UNAUTHORIZED: "Sesi Anda telah berakhir. Silakan login kembali.",
    ErrorKind.FORBIDDEN: "Anda tidak memiliki izin untuk melakukan aksi ini.",
    ErrorKind.NOT_FOUND: "Data yang Anda cari tidak ditemukan atau telah dihapus.",
    ErrorKind.CONFLICT: "Data telah diubah oleh pengguna lain. Muat ulang halaman.",
    ErrorKind.VALIDATION: "Beberapa data yang dimasukkan tidak valid. Periksa kembali form Anda.",
    ErrorKind.RATE_LIMIT: "Terlalu banyak permintaan. Tunggu beberapa saat sebelum mencoba lagi.",
    ErrorKind.SERVER_ERROR: "Terjadi kesalahan pada server. Silakan coba lagi nanti.",
    ErrorKind.OFFLINE: "Tidak ada koneksi internet. Perubahan akan dikirim saat online.",
    ErrorKind.UNKNOWN: "Terjadi kesalahan yang tidak diketahui. Silakan coba lagi.",
}


class FieldError(BaseModel):
    """Validation failure on a single field."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class MutationError(BaseModel):
    """Classified failure attached to a queue entry or returned by a service."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str = Field(..., description="Human-readable, user-facing text")
    detail: str | None = Field(default=None, description="Technical detail for logs")
    code: str | None = Field(default=None, description="Remote error code, if any")
    status_code: int | None = Field(default=None, description="HTTP status, if any")
    current_version: int | None = Field(
        default=None, description="Stored version reported with a CONFLICT"
    )
    field_errors: list[FieldError] = Field(default_factory=list)

    @classmethod
    def of(cls, kind: ErrorKind, detail: str | None = None, **extra: Any) -> "MutationError":
        """Build an error with the standard user message for its kind."""
        return cls(kind=kind, message=USER_MESSAGES[kind], detail=detail, **extra)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable
