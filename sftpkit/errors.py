"""Status-code errors matching the SSH_FXP_STATUS codes of the file transfer protocol."""

from __future__ import annotations

SSH_FX_OK = 0
SSH_FX_EOF = 1
SSH_FX_NO_SUCH_FILE = 2
SSH_FX_PERMISSION_DENIED = 3
SSH_FX_FAILURE = 4
SSH_FX_BAD_MESSAGE = 5
SSH_FX_NO_CONNECTION = 6
SSH_FX_CONNECTION_LOST = 7
SSH_FX_OP_UNSUPPORTED = 8

_MESSAGES = {
    SSH_FX_OK: "OK",
    SSH_FX_EOF: "EOF",
    SSH_FX_NO_SUCH_FILE: "no such file",
    SSH_FX_PERMISSION_DENIED: "permission denied",
    SSH_FX_BAD_MESSAGE: "bad message",
    SSH_FX_NO_CONNECTION: "no connection",
    SSH_FX_CONNECTION_LOST: "connection lost",
    SSH_FX_OP_UNSUPPORTED: "operation unsupported",
}


class FxError(Exception):
    """An error carrying an explicit SSH_FXP_STATUS code to send to the peer."""

    def __init__(self, code: int) -> None:
        self.code = int(code)
        super().__init__(self.code)

    def __str__(self) -> str:
        return _MESSAGES.get(self.code, "failure")

    def __repr__(self) -> str:
        return f"FxError({self.code})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FxError):
            return self.code == other.code
        return NotImplemented

    def __hash__(self) -> int:
        return hash((FxError, self.code))