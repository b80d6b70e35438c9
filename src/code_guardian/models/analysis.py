"""
Findings reported by provider-backed analysis.
"""

from typing import Literal

from pydantic import BaseModel

Severity = Literal["critical", "high", "medium", "low"]


class Finding(BaseModel):
    type: str = "unknown"
    severity: Severity = "medium"
    line: int = 0
    column: int = 0
    message: str = "Unknown vulnerability"
    suggestion: str = ""
    cwe: str = ""
    confidence: float = 0.8


class AnalysisResult(BaseModel):
    file: str
    language: str
    findings: list[Finding] = []
    timestamp: int = 0
