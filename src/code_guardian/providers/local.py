"""
Offline provider. Deterministic placeholders, no credential, no network.
"""

import json
from typing import Optional, Sequence

from code_guardian.models.chat import ChatRequestOptions, ProviderMessage, StreamCallbacks
from code_guardian.providers.base import AIProvider, replay


class LocalProvider(AIProvider):
    name = "local"

    async def analyze(self, prompt: str) -> str:
        return json.dumps([{
            "type": "info",
            "severity": "low",
            "line": 1,
            "description": "Local analysis mode - Connect to AI provider for full analysis",
            "fix": "",
            "cwe": "",
        }])

    async def generate_fix(self, prompt: str) -> str:
        return "// Local mode - Connect to AI provider for fix suggestions"

    async def chat(
        self,
        messages: Sequence[ProviderMessage],
        options: Optional[ChatRequestOptions] = None,
        callbacks: Optional[StreamCallbacks] = None,
    ) -> str:
        reply = f"Local mode placeholder. Provider is offline. Messages received: {len(messages)}"
        return replay(reply, callbacks)
