from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from app.core.enums import PostingErrorKind


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_detail(self) -> Any:
        return self.message


class PostingError(ServiceError):
    """Ledger/posting failure with a stable machine-readable kind."""

    def __init__(
        self,
        kind: PostingErrorKind,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        breakdown: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status_code)
        self.kind = kind
        self.breakdown = breakdown

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.breakdown is not None:
            detail["breakdown"] = self.breakdown
        return detail


def not_found(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"kind": PostingErrorKind.NOT_FOUND.value, "message": message},
    )
