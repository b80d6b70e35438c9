"""
Fix agent — a bounded propose/review loop between two independently prompted
agents, followed by a user-confirmed edit.

Session narration:
- role `agent`: orchestrator progress
- role `tool`: simulated read_file / write_file
- role `assistant`: raw provider output (streamed for proposals)
"""

import asyncio
import difflib
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from code_guardian.approval import extract_code_block, parse_approval
from code_guardian.documents import TextDocument
from code_guardian.errors import CodeGuardianError, FixApplyError, SessionError
from code_guardian.models.chat import ChatRequestOptions, ProviderMessage, StreamCallbacks
from code_guardian.models.fix import ApprovalResult, Diagnostic, FixContext, FixProposal, Position, Range
from code_guardian.models.session import MessageRole, SessionStatus, SessionType
from code_guardian.notify import LogNotifier, Notifier
from code_guardian.providers.base import AIProvider
from code_guardian.sessions import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_CONTEXT_PADDING = 5
TOOL_PAYLOAD_LIMIT = 3000

PROPOSER_PERSONA = (
    "You are a senior security engineer. Return only the corrected code snippet that should "
    "replace the provided block. Maintain formatting and indentation. If no changes are "
    "necessary, echo the original snippet."
)
APPROVER_PERSONA = (
    "You are the approval agent of a security review. You did not write the proposed change. "
    "Check that it resolves the reported issue, preserves behaviour and introduces no new "
    'vulnerability. Reply only with compact JSON: {"decision": "approve" | "reject", "notes": "..."}'
)

ConfirmFix = Callable[[FixProposal], Awaitable[bool]]


def build_context(document: TextDocument, diagnostic: Diagnostic, padding: int = DEFAULT_CONTEXT_PADDING) -> FixContext:
    """Snippet of whole lines around the diagnostic, clamped to the document."""
    last_line = max(document.line_count - 1, 0)
    start_line = max(0, diagnostic.range.start.line - padding)
    end_line = min(last_line, max(diagnostic.range.end.line, diagnostic.range.start.line) + padding)
    start_line = min(start_line, end_line)
    snippet_range = Range(
        start=Position(line=start_line, character=0),
        end=Position(line=end_line, character=len(document.line_text(end_line))),
    )
    return FixContext(
        snippet=document.get_text(snippet_range),
        snippet_range=snippet_range,
        language_id=document.language_id,
        start_line=start_line,
        end_line=end_line,
    )


def render_tool_message(tool: str, target: str, payload: str) -> str:
    if len(payload) > TOOL_PAYLOAD_LIMIT:
        payload = f"{payload[:TOOL_PAYLOAD_LIMIT]}\n... (truncated)"
    return f"`{tool}` → {target}\n\n[content]\n{payload}"


def unified_diff(path: str, original: str, replacement: str) -> str:
    return "\n".join(difflib.unified_diff(
        original.splitlines(),
        replacement.splitlines(),
        fromfile=f"a/{Path(path).name}",
        tofile=f"b/{Path(path).name}",
        lineterm="",
    ))


async def decline(_proposal: FixProposal) -> bool:
    return False


class FixAgent:
    def __init__(
        self,
        provider: AIProvider,
        store: SessionStore,
        confirm: Optional[ConfirmFix] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        context_padding: int = DEFAULT_CONTEXT_PADDING,
        notifier: Optional[Notifier] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.provider = provider
        self._store = store
        self._confirm = confirm or decline
        self.max_attempts = max_attempts
        self.context_padding = context_padding
        self._notifier = notifier or LogNotifier()

    async def run(self, document: TextDocument, diagnostic: Diagnostic) -> str:
        """Run one fix for a diagnostic. Returns the fix session id."""
        sid = self.open_session(document, diagnostic)
        await self.execute(sid, document, diagnostic)
        return sid

    def open_session(self, document: TextDocument, diagnostic: Diagnostic) -> str:
        file_name = Path(document.path).name
        session = self._store.create(SessionType.FIX, f"Fix {file_name}:{diagnostic.range.start.line + 1}", {
            "file_path": document.path,
            "diagnostic_code": diagnostic.code,
            "vulnerability_message": diagnostic.message,
        })
        return session.id

    async def execute(self, sid: str, document: TextDocument, diagnostic: Diagnostic) -> None:
        file_name = Path(document.path).name
        line = diagnostic.range.start.line + 1
        self._store.update_session_status(sid, SessionStatus.RUNNING)
        self._narrate(sid, f"Starting AI-assisted fix for **{file_name}** at line {line}.")
        self._narrate(sid, f"Issue detected: {diagnostic.message}")

        try:
            context = build_context(document, diagnostic, self.context_padding)
            proposal = await self._negotiate(sid, document, diagnostic, context)
            if proposal is None:
                self._narrate(sid, (
                    f"The approval agent could not sign off on a safe fix after {self.max_attempts} "
                    f"attempt{'s' if self.max_attempts != 1 else ''}. No changes were applied."
                ))
                self._finish(sid, SessionStatus.COMPLETED)
                return

            self._store.update_session_metadata(sid, {
                "fix_proposal": proposal.replacement,
                "approval_notes": proposal.approval_notes,
            })
            self._store.update_session_status(sid, SessionStatus.IDLE)
            self._narrate(sid, "Fix approved. Waiting for your confirmation before editing the file.")

            if not await self._confirm(proposal):
                self._narrate(sid, "Fix application cancelled by user.")
                self._finish(sid, SessionStatus.COMPLETED)
                return

            self._store.update_session_status(sid, SessionStatus.RUNNING)
            self._narrate(sid, "Applying changes with `write_file` tool...")
            await self._apply(document, context.snippet_range, proposal.replacement)
            self._store.add_message(sid, MessageRole.TOOL,
                                    render_tool_message("write_file", document.path, proposal.replacement))
            self._narrate(sid, "Fix applied. Please review and run your tests.")
            self._finish(sid, SessionStatus.COMPLETED)
        except asyncio.CancelledError:
            self._narrate(sid, "Fix run cancelled.")
            self._finish(sid, SessionStatus.CANCELLED)
            raise
        except Exception as e:
            if isinstance(e, CodeGuardianError):
                logger.error("Fix run %s failed: %s", sid, e)
            else:
                logger.exception("Fix run %s failed", sid)
            self._narrate(sid, f"Failed to complete the fix: {e}")
            self._finish(sid, SessionStatus.ERROR)
            self._notifier.error(f"Code Guardian fix failed: {e}")

    async def _negotiate(
        self, sid: str, document: TextDocument, diagnostic: Diagnostic, context: FixContext,
    ) -> Optional[FixProposal]:
        feedback: list[str] = []
        for attempt in range(1, self.max_attempts + 1):
            self._narrate(sid, f"Attempt {attempt}/{self.max_attempts}: gathering code context with `read_file` tool...")
            self._store.add_message(sid, MessageRole.TOOL,
                                    render_tool_message("read_file", document.path, context.snippet))

            replacement = await self._propose(sid, document, diagnostic, context, attempt, feedback)
            if not replacement:
                self._narrate(sid, f"Attempt {attempt}: provider returned an empty fix.")
                continue

            verdict = await self._review(sid, document, diagnostic, context, replacement, attempt)
            if verdict.approved:
                self._narrate(sid, f"Approval agent approved attempt {attempt}: {verdict.notes or 'no notes'}")
                return FixProposal(
                    file_path=document.path,
                    original=context.snippet,
                    replacement=replacement,
                    diff=unified_diff(document.path, context.snippet, replacement),
                    attempt=attempt,
                    approval_notes=verdict.notes,
                )
            self._narrate(sid, f"Approval agent rejected attempt {attempt}: {verdict.notes}")
            feedback.append(f"Attempt {attempt}: {verdict.notes}")
        return None

    async def _propose(
        self, sid: str, document: TextDocument, diagnostic: Diagnostic, context: FixContext,
        attempt: int, feedback: list[str],
    ) -> str:
        self._narrate(sid, "Requesting secure fix from provider...")
        message = self._store.add_message(sid, MessageRole.ASSISTANT, "", pending=True,
                                          metadata={"agent": "proposer", "attempt": attempt})
        if message is None:
            raise SessionError("Failed to append provider response message.")

        def on_token(fragment: str) -> None:
            self._store.append_to_message(sid, message.id, fragment)

        def on_complete(_text: str) -> None:
            self._store.update_message(sid, message.id, pending=False)

        prompt = self._fix_prompt(document, diagnostic, context, attempt, feedback)
        try:
            full_text = await self.provider.chat(
                [ProviderMessage(role="user", content=prompt)],
                ChatRequestOptions(system_prompt=PROPOSER_PERSONA),
                StreamCallbacks(on_token=on_token, on_complete=on_complete),
            )
        except BaseException:
            self._store.update_message(sid, message.id, pending=False)
            raise
        block = extract_code_block(full_text)
        return block if block is not None else full_text.strip()

    async def _review(
        self, sid: str, document: TextDocument, diagnostic: Diagnostic, context: FixContext,
        replacement: str, attempt: int,
    ) -> ApprovalResult:
        self._narrate(sid, f"Submitting attempt {attempt} to the approval agent...")
        raw = await self.provider.chat(
            [ProviderMessage(role="user", content=self._review_prompt(document, diagnostic, context, replacement))],
            ChatRequestOptions(system_prompt=APPROVER_PERSONA),
        )
        self._store.add_message(sid, MessageRole.ASSISTANT, raw,
                                metadata={"agent": "approver", "attempt": attempt})
        verdict = parse_approval(raw)
        self._store.update_session_metadata(sid, {"approval_notes": verdict.notes})
        return verdict

    @staticmethod
    def _fix_prompt(
        document: TextDocument, diagnostic: Diagnostic, context: FixContext, attempt: int, feedback: list[str],
    ) -> str:
        sections = [
            f"File: {document.path}",
            f"Language: {context.language_id}",
            f"Issue: {diagnostic.message}",
            f"Attempt: {attempt}",
            f"Lines {context.start_line + 1}-{context.end_line + 1}:",
            f"\n[original_snippet]\n{context.snippet}",
        ]
        if feedback:
            notes = "\n".join(f"- {note}" for note in feedback)
            sections.append(f"\n[reviewer_feedback]\nEarlier proposals were rejected:\n{notes}")
        sections.append(
            "\nProvide the secure updated snippet that resolves the issue. "
            "Return only the code, in a single fenced block."
        )
        return "\n".join(sections)

    @staticmethod
    def _review_prompt(document: TextDocument, diagnostic: Diagnostic, context: FixContext, replacement: str) -> str:
        return "\n".join([
            f"File: {document.path}",
            f"Language: {context.language_id}",
            f"Issue: {diagnostic.message}",
            f"\n[original_snippet]\n{context.snippet}",
            f"\n[proposed_snippet]\n{replacement}",
            '\nReply with {"decision": "approve" | "reject", "notes": "<short reason>"}.',
        ])

    @staticmethod
    async def _apply(document: TextDocument, range: Range, replacement: str) -> None:
        if not await document.apply_edit(range, replacement):
            raise FixApplyError("The editor rejected the edit; the file may have changed since it was read.")
        await document.save()

    def _narrate(self, sid: str, content: str) -> None:
        self._store.add_message(sid, MessageRole.AGENT, content)

    def _finish(self, sid: str, status: SessionStatus) -> None:
        self._store.flush()
        self._store.update_session_status(sid, status)
