"""
Cross-service model push

Sends a trained model's payload to a recommendation service's
``/model/update`` endpoint.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..core.exceptions import DataUnavailable
from ..core.models import Model


class RemoteModelPublisher:
    """Pushes model payloads to a remote recommendation service"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self.logger = logging.getLogger(__name__)

    async def push(self, model: Model) -> Dict[str, Any]:
        """
        Push a model to the remote registry

        Raises:
            DataUnavailable: if the remote service cannot be reached or rejects the push
        """
        url = f"{self.base_url}/model/update"
        try:
            if self._client is not None:
                response = await self._client.post(url, json=model.to_payload())
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=model.to_payload())
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DataUnavailable("recommendation engine", e)

        body = response.json()
        self.logger.info(f"Model deployed: {model.version} -> {self.base_url}")
        return body

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
