"""
Anthropic messages provider. No native streaming: the reply is fragmented
locally so callers see the same callback sequence as with OpenAI.
"""

from typing import Any, Optional, Sequence

from code_guardian.errors import CredentialError
from code_guardian.models.chat import ChatRequestOptions, ProviderMessage, StreamCallbacks
from code_guardian.providers.base import ANALYZE_PERSONA, FIX_PERSONA, AIProvider, replay
from code_guardian.transport.http import HttpClient
from code_guardian.transport.sse import dig

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-3-opus-20240229"
DEFAULT_MAX_TOKENS = 800
DEFAULT_TEMPERATURE = 0.2


class AnthropicProvider(AIProvider):
    name = "anthropic"

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, http: Optional[HttpClient] = None,
                 api_url: str = API_URL):
        self._api_key = api_key
        self._model = model or DEFAULT_MODEL
        self._http = http or HttpClient()
        self._api_url = api_url

    def _ensure_api_key(self) -> None:
        if not self._api_key:
            raise CredentialError("Anthropic")

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self._api_key, "anthropic-version": API_VERSION}

    async def _send(self, body: dict[str, Any]) -> str:
        data = await self._http.post_json(self._api_url, body, self._headers())
        return dig(data, "content", 0, "text") or ""

    async def _complete(self, system: str, prompt: str, max_tokens: int, temperature: float) -> str:
        self._ensure_api_key()
        return await self._send({
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "system": system,
            "temperature": temperature,
        })

    async def analyze(self, prompt: str) -> str:
        return await self._complete(ANALYZE_PERSONA, prompt, 2000, 0.2)

    async def generate_fix(self, prompt: str) -> str:
        return await self._complete(FIX_PERSONA, prompt, 1500, 0.1)

    async def chat(
        self,
        messages: Sequence[ProviderMessage],
        options: Optional[ChatRequestOptions] = None,
        callbacks: Optional[StreamCallbacks] = None,
    ) -> str:
        self._ensure_api_key()
        options = options or ChatRequestOptions()
        body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": options.max_tokens if options.max_tokens is not None else DEFAULT_MAX_TOKENS,
            "temperature": options.temperature if options.temperature is not None else DEFAULT_TEMPERATURE,
            # Anthropic only knows user/assistant turns
            "messages": [
                {"role": "assistant" if m.role == "assistant" else "user", "content": m.content}
                for m in messages
            ],
        }
        if options.system_prompt:
            body["system"] = options.system_prompt
        return replay(await self._send(body), callbacks)

    async def close(self) -> None:
        await self._http.close()
