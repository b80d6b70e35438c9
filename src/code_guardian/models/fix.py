"""
Fix models — diagnostics handed over by the detector pipeline and the
ephemeral records of one fix run.
"""

from typing import Literal, Optional

from pydantic import BaseModel


class Position(BaseModel):
    line: int  # zero-based
    character: int = 0


class Range(BaseModel):
    start: Position
    end: Position

    @classmethod
    def lines(cls, start_line: int, end_line: int, end_character: int = 0) -> "Range":
        return cls(start=Position(line=start_line), end=Position(line=end_line, character=end_character))


class Diagnostic(BaseModel):
    range: Range
    message: str
    code: Optional[str] = None


class FixContext(BaseModel):
    """Snippet around a diagnostic, rebuilt for every fix run."""
    snippet: str
    snippet_range: Range
    language_id: str
    start_line: int
    end_line: int


class ApprovalResult(BaseModel):
    decision: Literal["approve", "reject"]
    notes: str = ""

    @property
    def approved(self) -> bool:
        return self.decision == "approve"


class FixProposal(BaseModel):
    """An approved replacement awaiting user confirmation."""
    file_path: str
    original: str
    replacement: str
    diff: str
    attempt: int
    approval_notes: str = ""
