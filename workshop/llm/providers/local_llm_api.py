import asyncio
import json
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import requests

from workshop.errors import GenerationError
from workshop.llm.base import AICollaborator

logger = logging.getLogger(__name__)

_STREAM_END = object()


def to_json_schema(schema: Any) -> Any:
    """Gemini-style schemas spell types in upper case ("OBJECT"); Ollama wants JSON Schema."""
    if isinstance(schema, dict):
        out = {}
        for key, value in schema.items():
            if key == "type" and isinstance(value, str):
                out[key] = value.lower()
            else:
                out[key] = to_json_schema(value)
        return out
    if isinstance(schema, list):
        return [to_json_schema(v) for v in schema]
    return schema


@dataclass
class LocalChatSession:
    system_instruction: str
    messages: List[Dict[str, str]] = field(default_factory=list)

    def history(self) -> List[Dict[str, str]]:
        return [{"role": "system", "content": self.system_instruction}] + self.messages


class LocalLLMProvider(AICollaborator):
    """
    Local LLM provider, designed to talk to Ollama by default.

    Default config (overridable via env):
      - LOCAL_LLM_URL (default: http://localhost:11434/api/chat)
      - LOCAL_LLM_MODEL (default: qwen2.5-coder:7b)

    requests is blocking, so every call runs in a worker thread.
    """

    def __init__(self, model: Optional[str] = None, url: Optional[str] = None, name: str = "local", timeout: int = 600):
        self.name = name
        self.url = url or os.getenv("LOCAL_LLM_URL", "http://localhost:11434/api/chat")
        self.model = model or os.getenv("LOCAL_LLM_MODEL", "qwen2.5-coder:7b")
        self.timeout = timeout

    # ---------- blocking helpers ----------

    def _chat(self, messages: List[Dict[str, str]], options: Dict[str, Any], fmt: Any = None) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": options,
        }
        if fmt is not None:
            payload["format"] = fmt

        logger.info("LocalLLMProvider[%s]: calling %s model=%s", self.name, self.url, self.model)
        try:
            resp = requests.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.error("LocalLLMProvider[%s] request failed: %s", self.name, exc)
            raise

        data = resp.json()

        # Ollama /api/chat format: { "message": {"role": "...", "content": "..."}, "done": true }
        if isinstance(data, dict) and isinstance(data.get("message"), dict):
            return data["message"].get("content", "")

        logger.error("LocalLLMProvider[%s]: unexpected response format: %s", self.name, data)
        raise GenerationError("Unexpected local LLM response format")

    def _stream_into(self, messages: List[Dict[str, str]], loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Any]") -> None:
        payload = {"model": self.model, "messages": messages, "stream": True}
        try:
            with requests.post(self.url, json=payload, timeout=self.timeout, stream=True) as resp:
                resp.raise_for_status()
                for line in resp.iter_lines():
                    if not line:
                        continue
                    data = json.loads(line)
                    content = (data.get("message") or {}).get("content", "")
                    if content:
                        loop.call_soon_threadsafe(queue.put_nowait, content)
                    if data.get("done"):
                        break
        except Exception as exc:  # noqa: BLE001 - re-raised on the event loop side
            loop.call_soon_threadsafe(queue.put_nowait, exc)
        finally:
            loop.call_soon_threadsafe(queue.put_nowait, _STREAM_END)

    # ---------- AICollaborator ----------

    async def generate_structured(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        messages = [
            {"role": "system", "content": "Respond with a single JSON object matching the given schema."},
            {"role": "user", "content": prompt},
        ]
        text = await asyncio.to_thread(self._chat, messages, {"temperature": 0.2}, to_json_schema(schema))
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise GenerationError(f"Model returned invalid JSON: {e}") from e

    async def generate_raw_text(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        *,
        temperature: Optional[float] = None,
        top_k: Optional[int] = None,
        top_p: Optional[float] = None,
    ) -> str:
        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})
        options = {k: v for k, v in (("temperature", temperature), ("top_k", top_k), ("top_p", top_p)) if v is not None}
        return await asyncio.to_thread(self._chat, messages, options)

    async def open_chat_session(self, system_instruction: str) -> LocalChatSession:
        return LocalChatSession(system_instruction=system_instruction)

    async def stream_message(self, session: LocalChatSession, message: str) -> AsyncIterator[str]:
        session.messages.append({"role": "user", "content": message})
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[Any]" = asyncio.Queue()
        worker = threading.Thread(target=self._stream_into, args=(session.history(), loop, queue), daemon=True)
        worker.start()

        reply: List[str] = []
        while True:
            item = await queue.get()
            if item is _STREAM_END:
                break
            if isinstance(item, Exception):
                session.messages.pop()
                raise item
            reply.append(item)
            yield item

        session.messages.append({"role": "assistant", "content": "".join(reply)})
