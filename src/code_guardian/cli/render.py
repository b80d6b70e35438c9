"""Console rendering of session transcripts, live or after the fact."""

from rich.console import Console

from code_guardian.models.session import ChatMessage, MessageRole, StoreSnapshot

ROLE_LABELS = {
    MessageRole.USER: "[cyan]You[/cyan]",
    MessageRole.ASSISTANT: "[green]Guardian[/green]",
    MessageRole.AGENT: "[magenta]agent[/magenta]",
    MessageRole.TOOL: "[blue]tool[/blue]",
    MessageRole.SYSTEM: "[dim]system[/dim]",
}


def render_message(console: Console, message: ChatMessage) -> None:
    label = ROLE_LABELS.get(message.role, message.role.value)
    agent = (message.metadata or {}).get("agent")
    if agent:
        label = f"{label} [dim]({agent})[/dim]"
    if message.role == MessageRole.TOOL:
        console.print(f"{label}:")
        console.print(message.content, markup=False, highlight=False, style="dim")
    else:
        console.print(f"{label}: ", end="")
        console.print(message.content, markup=False, highlight=False)


class TranscriptPrinter:
    """Store observer that prints one session's new messages as they land.

    Pending assistant messages are streamed fragment by fragment.
    """

    def __init__(self, console: Console, session_id: str, skip_roles: tuple = (MessageRole.USER,)):
        self._console = console
        self._session_id = session_id
        self._skip_roles = skip_roles
        self._done: set[str] = set()
        self._streamed: dict[str, str] = {}

    def mark_seen(self, snapshot: StoreSnapshot) -> None:
        for session in snapshot.sessions:
            if session.id == self._session_id:
                self._done.update(m.id for m in session.messages)

    def __call__(self, snapshot: StoreSnapshot) -> None:
        session = next((s for s in snapshot.sessions if s.id == self._session_id), None)
        if session is None:
            return
        for message in session.messages:
            if message.id in self._done:
                continue
            if message.role in self._skip_roles:
                self._done.add(message.id)
                continue
            if message.role == MessageRole.ASSISTANT and (message.pending or message.id in self._streamed):
                self._stream(message)
                continue
            render_message(self._console, message)
            self._done.add(message.id)

    def _stream(self, message: ChatMessage) -> None:
        printed = self._streamed.get(message.id)
        if printed is None:
            self._console.print(f"{ROLE_LABELS[MessageRole.ASSISTANT]}: ", end="")
            printed = ""
        if message.content.startswith(printed):
            delta = message.content[len(printed):]
        else:
            # content was replaced (e.g. failure text), print it whole
            self._console.print()
            delta = message.content
        if delta:
            self._console.print(delta, end="", markup=False, highlight=False)
        self._streamed[message.id] = message.content
        if not message.pending:
            self._console.print()
            self._done.add(message.id)
