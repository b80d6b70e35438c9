"""
Code Guardian error types.

Credential errors fail fast before any network call, provider errors carry the
raw response body, parse errors are absorbed locally by their callers.
"""

from typing import Any, Optional

SET_KEY_COMMAND = "code-guardian auth set-key"


class CodeGuardianError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class CredentialError(CodeGuardianError):
    def __init__(self, provider: str, code: str = "credential_error"):
        super().__init__(
            code,
            f"{provider} API key not set. Run `{SET_KEY_COMMAND}` to store your key.",
            {"provider": provider},
        )


class ProviderError(CodeGuardianError):
    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__("provider_error", message, {"status_code": status_code} if status_code else None)
        self.status_code = status_code
        self.body = body


class StreamParseError(CodeGuardianError):
    def __init__(self, message: str, line: str = ""):
        super().__init__("stream_parse_error", message, {"line": line[:200]})


class SessionError(CodeGuardianError):
    def __init__(self, message: str, code: str = "session_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class FixApplyError(CodeGuardianError):
    def __init__(self, message: str):
        super().__init__("fix_apply_error", message)
