"""
Parsing of model replies: fenced code in fix proposals and approval decisions.

The approval agent is asked for {"decision": "approve"|"reject", "notes": ...}
but models drift, so parsing degrades in steps: fenced JSON, then the outermost
braces, then a keyword scan, then reject.
"""

import json
import logging
import re
from typing import Any, Optional

from code_guardian.models.fix import ApprovalResult

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_NOTE = "Approval agent returned an empty response."

_FENCE = re.compile(r"```[\w-]*\s*\n?([\s\S]*?)```")


def extract_code_block(response: str) -> Optional[str]:
    """Return the body of the first fenced block, if any."""
    match = re.search(r"```[\w+-]*\n([\s\S]*?)```", response)
    if match:
        return match.group(1).strip()
    return None


def _json_candidates(text: str) -> list[str]:
    candidates = [m.group(1).strip() for m in _FENCE.finditer(text)]
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])
    return candidates


def _decode(candidate: str) -> Optional[dict[str, Any]]:
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if isinstance(data, dict) and "decision" in data:
        return data
    return None


def parse_approval(raw: str) -> ApprovalResult:
    text = (raw or "").strip()
    if not text:
        return ApprovalResult(decision="reject", notes=EMPTY_RESPONSE_NOTE)

    for candidate in _json_candidates(text):
        data = _decode(candidate)
        if data is None:
            continue
        decision = str(data.get("decision") or "").strip().lower()
        notes = data.get("notes")
        return ApprovalResult(
            decision="approve" if decision == "approve" else "reject",
            notes=notes if isinstance(notes, str) else (json.dumps(notes) if notes is not None else ""),
        )

    logger.debug("Approval reply is not JSON, falling back to keyword scan")
    lowered = text.lower()
    if "approve" in lowered and "reject" not in lowered:
        return ApprovalResult(decision="approve", notes=text)
    return ApprovalResult(decision="reject", notes=text)
