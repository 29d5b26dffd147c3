from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


class RpcError(Exception):
    """Single error shape for every failed RPC call.

    Carries the transport message and the underlying exception (if any).
    Emitted to observers as a value rather than raised into the stream.
    """

    def __init__(self, message: str, exception: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.exception = exception

    @classmethod
    def from_exception(cls, exc: BaseException) -> RpcError:
        if isinstance(exc, RpcError):
            return exc
        return cls(str(exc) or type(exc).__name__, exc)

    def __repr__(self) -> str:
        return f"RpcError(message={self.message!r}, exception={self.exception!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RpcError):
            return NotImplemented
        return self.message == other.message and self.exception is other.exception

    __hash__ = Exception.__hash__


@dataclass(frozen=True, slots=True)
class RpcResult:
    value: Any


Outcome = Union[RpcResult, RpcError]


__all__ = ["Outcome", "RpcError", "RpcResult"]
