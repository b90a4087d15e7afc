from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    EXTRACTION = "extraction"
    PARSE = "parse"
    NETWORK = "network"
    VALIDATION = "validation"
    DOWNLOAD = "download"
    CANCELLED = "cancelled"


_KIND_LABELS = {
    ErrorKind.EXTRACTION: "ExtractionError",
    ErrorKind.PARSE: "ParseError",
    ErrorKind.NETWORK: "NetworkError",
    ErrorKind.VALIDATION: "ValidationError",
    ErrorKind.DOWNLOAD: "DownloadError",
    ErrorKind.CANCELLED: "CancelledError",
}


class PinterestError(Exception):
    """Raised by the extraction and download services.

    ``kind`` tells callers what went wrong. ``status_code`` is only set for
    network errors and ``file_path`` only for download errors.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        code: str | None = None,
        cause: BaseException | None = None,
        status_code: int | None = None,
        file_path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code
        self.cause = cause
        self.status_code = status_code
        self.file_path = file_path

    def __str__(self) -> str:
        text = f"{_KIND_LABELS[self.kind]}: {self.message}"
        if self.status_code is not None:
            text += f" (status: {self.status_code})"
        if self.code is not None:
            text += f" (code: {self.code})"
        return text

    @property
    def is_cancelled(self) -> bool:
        return self.kind is ErrorKind.CANCELLED

    @classmethod
    def extraction(cls, message: str, **kwargs) -> PinterestError:
        return cls(ErrorKind.EXTRACTION, message, **kwargs)

    @classmethod
    def parse(cls, message: str, **kwargs) -> PinterestError:
        return cls(ErrorKind.PARSE, message, **kwargs)

    @classmethod
    def network(cls, message: str, status_code: int | None = None, **kwargs) -> PinterestError:
        return cls(ErrorKind.NETWORK, message, status_code=status_code, **kwargs)

    @classmethod
    def validation(cls, message: str, **kwargs) -> PinterestError:
        return cls(ErrorKind.VALIDATION, message, **kwargs)

    @classmethod
    def download(cls, message: str, file_path: str | None = None, **kwargs) -> PinterestError:
        return cls(ErrorKind.DOWNLOAD, message, file_path=file_path, **kwargs)

    @classmethod
    def cancelled(cls, message: str = "Operation cancelled by user") -> PinterestError:
        return cls(ErrorKind.CANCELLED, message)
