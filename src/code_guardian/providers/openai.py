"""
OpenAI chat completions provider with incremental streaming.
"""

import logging
from contextlib import aclosing
from typing import Any, Optional, Sequence

from code_guardian.errors import CredentialError, StreamParseError
from code_guardian.models.chat import ChatRequestOptions, ProviderMessage, StreamCallbacks
from code_guardian.providers.base import ANALYZE_PERSONA, FIX_PERSONA, AIProvider, replay
from code_guardian.transport.http import HttpClient
from code_guardian.transport.sse import Frame, dig, parse_sse_line

logger = logging.getLogger(__name__)

API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o-mini"


class OpenAIProvider(AIProvider):
    name = "openai"

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, http: Optional[HttpClient] = None,
                 api_url: str = API_URL):
        self._api_key = api_key
        self._model = model or DEFAULT_MODEL
        self._http = http or HttpClient()
        self._api_url = api_url

    def _ensure_api_key(self) -> None:
        if not self._api_key:
            raise CredentialError("OpenAI")

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _body(self, messages: list[dict[str, str]], options: Optional[ChatRequestOptions], stream: bool) -> dict[str, Any]:
        body: dict[str, Any] = {"model": self._model, "messages": messages, "stream": stream}
        if options is not None:
            if options.temperature is not None:
                body["temperature"] = options.temperature
            if options.max_tokens is not None:
                body["max_tokens"] = options.max_tokens
        return body

    async def _complete(self, system: str, prompt: str) -> str:
        self._ensure_api_key()
        body = self._body([{"role": "system", "content": system}, {"role": "user", "content": prompt}], None, False)
        data = await self._http.post_json(self._api_url, body, self._auth_headers())
        return dig(data, "choices", 0, "message", "content") or ""

    async def analyze(self, prompt: str) -> str:
        return await self._complete(ANALYZE_PERSONA, prompt)

    async def generate_fix(self, prompt: str) -> str:
        return await self._complete(FIX_PERSONA, prompt)

    async def chat(
        self,
        messages: Sequence[ProviderMessage],
        options: Optional[ChatRequestOptions] = None,
        callbacks: Optional[StreamCallbacks] = None,
    ) -> str:
        self._ensure_api_key()
        wire = [m.to_wire() for m in messages]
        if options is not None and options.system_prompt:
            wire.insert(0, {"role": "system", "content": options.system_prompt})

        stream = callbacks is not None and callbacks.on_token is not None
        body = self._body(wire, options, stream)

        if not stream:
            data = await self._http.post_json(self._api_url, body, self._auth_headers())
            return replay(dig(data, "choices", 0, "message", "content") or "", callbacks)

        callbacks.start()  # type: ignore[union-attr]
        parts: list[str] = []
        async with aclosing(self._http.stream_lines(self._api_url, body, self._auth_headers())) as lines:
            async for line in lines:
                try:
                    frame = parse_sse_line(line)
                except StreamParseError as e:
                    logger.warning("Skipping malformed OpenAI stream frame: %s", e)
                    continue
                if frame.kind == Frame.DONE:
                    break
                if frame.kind != Frame.DATA:
                    continue
                delta = dig(frame.payload, "choices", 0, "delta", "content")
                if isinstance(delta, str) and delta:
                    parts.append(delta)
                    callbacks.token(delta)  # type: ignore[union-attr]

        full_text = "".join(parts)
        callbacks.complete(full_text)  # type: ignore[union-attr]
        return full_text

    async def close(self) -> None:
        await self._http.close()
