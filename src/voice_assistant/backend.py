"""
Cliente del backend: un httpx.AsyncClient compartido por las tres operaciones
remotas (transcribe, converse, synthesize) y el healthcheck.
"""
from typing import Iterable, Optional

import httpx

from .config import BackendConfig
from .llm.converse import converse
from .state import Message
from .stt.transcribe import transcribe
from .tts.synthesize import synthesize
from .utils.logging import log_ctrl


class BackendClient:
    """Operaciones request/response sin reintentos. Usar como async context manager."""

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or BackendConfig.from_env()
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def transcribe(self, audio: bytes) -> str:
        return await transcribe(self._client, audio, self.config.transcribe_path)

    async def converse(self, history: Iterable[Message], prompt: str) -> str:
        return await converse(self._client, history, prompt, self.config.converse_path)

    async def synthesize(self, text: str) -> bytes:
        return await synthesize(self._client, text, self.config.synthesize_path)

    async def healthcheck(self) -> bool:
        """True si el backend responde status OK; nunca lanza."""
        try:
            resp = await self._client.get(self.config.health_path)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log_ctrl("Health", f"Backend no disponible: {e}")
            return False
        return isinstance(data, dict) and data.get("status") == "OK"
