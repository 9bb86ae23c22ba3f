"""Exchange-rate table client."""

import logging
from typing import Any, Dict, Optional

import requests

from shared.config import DEFAULT_EXCHANGE_RATE_URL

logger = logging.getLogger(__name__)


class ExchangeRateService:
    """Fetches the base-currency rate table from a public API.

    The API takes no parameters and answers with ``{"rates": {code: rate}}``.
    """

    def __init__(
        self,
        url: str = DEFAULT_EXCHANGE_RATE_URL,
        *,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.timeout = int(timeout)
        self.s = session or requests.Session()
        self.s.headers.update({"Accept": "application/json"})

    def fetch_rates(self) -> Optional[Dict[str, float]]:
        """Return the rate table, or None if it cannot be fetched."""
        try:
            r = self.s.get(self.url, timeout=self.timeout)
            r.raise_for_status()
            data: Any = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch exchange rates: {e}")
            return None

        rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict):
            logger.error("Exchange rate response has no rates table")
            return None

        table = {
            str(code).upper(): float(value)
            for code, value in rates.items()
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0
        }
        logger.info(f"Loaded {len(table)} exchange rates")
        return table
