import httpx
import logging
from typing import Optional

from pydantic import ValidationError

from prom_eagle.domain.errors import NetworkError, ProtocolError
from prom_eagle.domain.metrics import EagleDemand, EagleResponse

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://rainforestcloud.com:9445/cgi-bin/post_manager"
GET_INSTANTANEOUS_DEMAND = "<Command><Name>get_instantaneous_demand</Name><Format>JSON</Format></Command>"


class EagleAdapter:
    def __init__(
        self,
        user: str,
        password: str,
        cloud_id: str,
        url: str = DEFAULT_URL,
        timeout: float = 10.0,
    ):
        self.url = url
        self.user = user
        self.password = password
        self.cloud_id = cloud_id
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            # The cloud identifies the meter by these static headers
            headers = {
                "User": self.user,
                "Password": self.password,
                "Cloud-Id": self.cloud_id,
            }
            self._client = httpx.AsyncClient(headers=headers, timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def get_reading(self) -> EagleDemand:
        """
        Ask the Eagle cloud for the current instantaneous demand.
        Performs exactly one request, never retries.
        """
        client = self._get_client()

        try:
            response = await client.post(self.url, content=GET_INSTANTANEOUS_DEMAND)
        except httpx.TransportError as e:
            raise NetworkError(f"Request to {self.url} failed: {e!r}") from e
        except httpx.RequestError as e:
            # Redirect loops, bad content encoding and the like
            raise ProtocolError(f"Request to {self.url} failed: {e!r}") from e

        if not 200 <= response.status_code < 300:
            raise ProtocolError(f"Eagle cloud returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"Eagle cloud returned a body that is not JSON: {e}") from e

        try:
            parsed = EagleResponse.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(f"Unexpected response shape: {e}") from e

        demand = parsed.instantaneous_demand
        logger.debug(f"Reading from meter {demand.meter_mac_id} at {demand.timestamp}: {demand.demand}")
        return demand
