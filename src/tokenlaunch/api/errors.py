from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from tokenlaunch.runtime.errors import CONFLICT, NOT_FOUND, UNAUTHORIZED, ApplyError

# Everything else an ApplyError can carry is a client-side 400.
_STATUS_BY_CODE = {
    UNAUTHORIZED: 403,
    NOT_FOUND: 404,
    CONFLICT: 409,
}


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def conflict(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(409, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_apply_error(e: ApplyError) -> "ApiError":
        details = e.details if isinstance(e.details, dict) else {}
        return ApiError(_STATUS_BY_CODE.get(e.code, 400), e.code, e.reason, dict(details))

    def to_json(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "error": {"code": self.code, "message": self.message, "details": dict(self.details)},
        }
