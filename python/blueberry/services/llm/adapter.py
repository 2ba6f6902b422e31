"""Provider adapter interface.

An adapter turns an LLMRequest into the provider's HTTP call and yields
LLMChunk values as the provider streams. It owns nothing: the shared
httpx.AsyncClient comes from the app lifespan and the API key from settings,
both handed in by LLMRouter. Adapters do not retry, do not touch the
database and do not log bodies; httpx errors are left for the router to
classify.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import httpx

from blueberry.services.llm.types import LLMChunk, LLMRequest


class LLMAdapter(ABC):
    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    @abstractmethod
    def generate_stream(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> AsyncIterator[LLMChunk]:
        """Stream the completion for `req`, ending with exactly one done=True chunk.

        Raises:
            httpx.HTTPStatusError / httpx.TimeoutException / httpx.NetworkError:
                Left unclassified for the router.
            LLMError: The provider refused the request or the stream broke
                off without a finish marker.
        """
