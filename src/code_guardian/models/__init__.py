from code_guardian.models.analysis import AnalysisResult, Finding
from code_guardian.models.chat import ChatRequestOptions, ProviderMessage, StreamCallbacks
from code_guardian.models.fix import ApprovalResult, Diagnostic, FixContext, FixProposal, Position, Range
from code_guardian.models.session import (
    ChatMessage,
    ChatSession,
    MessageRole,
    SessionStatus,
    SessionType,
    StoreSnapshot,
)

__all__ = [
    "AnalysisResult",
    "ApprovalResult",
    "ChatMessage",
    "ChatRequestOptions",
    "ChatSession",
    "Diagnostic",
    "Finding",
    "FixContext",
    "FixProposal",
    "MessageRole",
    "Position",
    "ProviderMessage",
    "Range",
    "SessionStatus",
    "SessionType",
    "StoreSnapshot",
    "StreamCallbacks",
]
