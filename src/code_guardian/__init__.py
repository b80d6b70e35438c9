"""
code-guardian — security assistant runtime for editors.

Provider-agnostic streaming chat, a persisted multi-session store and a
two-agent fix loop that only edits code after review and user confirmation.
"""

from code_guardian.client import AsyncCodeGuardian, CodeGuardian
from code_guardian.config import Settings, load_settings
from code_guardian.errors import (
    CodeGuardianError,
    CredentialError,
    FixApplyError,
    ProviderError,
    SessionError,
    StreamParseError,
)
from code_guardian.models import Diagnostic, Range, SessionStatus, SessionType
from code_guardian.sessions import SessionStore

__version__ = "0.1.0"
__all__ = [
    "AsyncCodeGuardian",
    "CodeGuardian",
    "CodeGuardianError",
    "CredentialError",
    "Diagnostic",
    "FixApplyError",
    "ProviderError",
    "Range",
    "SessionError",
    "SessionStatus",
    "SessionStore",
    "SessionType",
    "Settings",
    "StreamParseError",
    "load_settings",
]
