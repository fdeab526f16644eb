"""Live price lookup against the exchange's price service.

The service answers ``GET {base_url}/{pair}`` with either ``{"price": n}``
or the wrapped ``{"success": true, "data": {"price": n, ...}}`` shape.
One attempt with a short timeout; callers decide what to do on failure.
"""

import logging
import math
from urllib.parse import quote

import httpx

from settlement.config import settings
from settlement.errors import PriceUnavailable

logger = logging.getLogger(__name__)


class PriceClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def get_current_price(self, pair: str) -> float:
        """Return the latest traded price for ``pair``.

        Raises:
            PriceUnavailable: unreachable service, non-2xx, or malformed body.
        """
        url = f"{self.base_url}/{quote(pair, safe='')}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.get(url, headers={"Accept": "application/json"})
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            raise PriceUnavailable(
                f"Price service returned {e.response.status_code} for {pair}",
                {"pair": pair},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise PriceUnavailable(f"Price service error for {pair}: {e}", {"pair": pair}) from e

        return _parse_price(pair, data)


def _parse_price(pair: str, data) -> float:
    """Extract a positive finite price from either response shape."""
    payload = data.get("data", data) if isinstance(data, dict) else None
    raw = payload.get("price") if isinstance(payload, dict) else None
    try:
        price = float(raw)
    except (TypeError, ValueError):
        raise PriceUnavailable(f"Malformed price payload for {pair}", {"pair": pair})
    if not math.isfinite(price) or price <= 0:
        raise PriceUnavailable(f"Non-positive price for {pair}: {raw!r}", {"pair": pair})
    return price


def get_price_client() -> PriceClient:
    """Dependency that builds a price client from configuration."""
    return PriceClient(settings.price_service_url, timeout=settings.price_timeout_seconds)
