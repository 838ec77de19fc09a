"""Client for the external text-generation service behind the question endpoint."""

import asyncio
import logging
from typing import Optional

import aiohttp

from maison.server.config import InferenceConfig

logger = logging.getLogger(__name__)


class InferenceError(Exception):
    """Raised when the inference service fails or times out."""

    pass


class InferenceClient:
    """Forwards natural-language questions to a text-generation endpoint."""

    def __init__(self, config: InferenceConfig):
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def configured(self) -> bool:
        return bool(self.config.url)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def ask(self, question: str) -> str:
        """Send a question and return the generated answer.

        Raises:
            InferenceError: If the upstream call fails.
        """
        body = {"prompt": question, "stream": False}
        if self.config.model:
            body["model"] = self.config.model

        try:
            async with self._get_session().post(self.config.url, json=body) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise InferenceError(f"inference service returned {response.status}: {text[:200]}")
                if response.content_type == "application/json":
                    data = await response.json()
                    if not isinstance(data, dict):
                        raise InferenceError("inference service returned an unexpected body")
                    return str(data.get("response") or data.get("answer") or data.get("text") or "")
                return await response.text()
        except asyncio.TimeoutError:
            # aiohttp's timeout errors subclass both ClientError and TimeoutError
            raise InferenceError(f"inference service timed out after {self.config.timeout}s")
        except aiohttp.ClientError as e:
            raise InferenceError(f"inference service unreachable: {e}") from e

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None
