"""
Provider-backed analysis: ask the model for a JSON array of issues in a file
and for fixed code for a single finding.
"""

import json
import logging
import re
from typing import Any

from code_guardian.models.analysis import AnalysisResult, Finding
from code_guardian.models.session import now_ms
from code_guardian.providers.base import AIProvider

logger = logging.getLogger(__name__)

SEVERITIES = {"critical", "high", "medium", "low"}


def build_security_prompt(code: str, language: str, file_path: str) -> str:
    return f"""Analyze this {language} code from {file_path} for security issues:

```{language}
{code}
```

Please identify:
1. Security vulnerabilities (injection, XSS, authentication issues, etc.)
2. Performance problems (memory leaks, inefficient algorithms, etc.)
3. Code quality issues (anti-patterns, maintainability concerns)
4. Dependency vulnerabilities

For each issue found, provide the issue type, severity (critical/high/medium/low),
line number, description and a suggested fix with code example.

Format as JSON array with structure:
{{
  "type": "vulnerability_type",
  "severity": "high",
  "line": 10,
  "description": "detailed description",
  "fix": "suggested fix code",
  "cwe": "CWE-XX"
}}"""


def build_fix_prompt(finding: Finding, code: str, language: str) -> str:
    return f"""Given this {language} code with a {finding.type} vulnerability:

{code}

The vulnerability is: {finding.message}
Location: Line {finding.line}

Provide a fixed version of the code that addresses this security issue while maintaining functionality.
Return only the fixed code without explanation."""


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _to_finding(issue: Any) -> Finding:
    if not isinstance(issue, dict):
        return Finding(message=str(issue))
    severity = str(issue.get("severity") or "medium").lower()
    return Finding(
        type=str(issue.get("type") or "unknown"),
        severity=severity if severity in SEVERITIES else "medium",
        line=_int(issue.get("line")),
        column=_int(issue.get("column")),
        message=str(issue.get("description") or "Unknown vulnerability"),
        suggestion=str(issue.get("fix") or ""),
        cwe=str(issue.get("cwe") or ""),
    )


def parse_findings(response: str) -> list[Finding]:
    """Pull the JSON array out of a model reply. Unparseable replies yield no findings."""
    match = re.search(r"\[[\s\S]*\]", response or "")
    if not match:
        return []
    try:
        issues = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse analysis response: %s", e)
        return []
    if not isinstance(issues, list):
        return []
    return [_to_finding(issue) for issue in issues]


async def analyze_source(provider: AIProvider, code: str, language: str, file_path: str) -> AnalysisResult:
    response = await provider.analyze(build_security_prompt(code, language, file_path))
    findings = sorted(parse_findings(response), key=lambda f: f.line)
    return AnalysisResult(file=file_path, language=language, findings=findings, timestamp=now_ms())


async def suggest_fix(provider: AIProvider, finding: Finding, code: str, language: str) -> str:
    """Fixed code for one finding; falls back to the model's own suggestion on failure."""
    try:
        return await provider.generate_fix(build_fix_prompt(finding, code, language))
    except Exception:
        logger.exception("Failed to generate fix for %s at line %d", finding.type, finding.line)
        return finding.suggestion
