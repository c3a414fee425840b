"""Upstream instrument listing providers."""

import asyncio
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from ...config.logging import get_logger
from ...config.settings import get_settings
from ...exceptions import UpstreamUnavailable

logger = get_logger(__name__)

STOCK_BASIC_FIELDS = "ts_code,symbol,name,area,industry,market,list_date"


class InstrumentProvider(Protocol):
    """Protocol for sources of the full instrument listing."""

    async def fetch_listing(self) -> List[Dict[str, Any]]:
        """Return every listed instrument as a dict of raw fields."""
        ...


class TushareInstrumentProvider:
    """Fetches the listed-stock universe from the Tushare Pro stock_basic API."""

    name = "tushare"

    def __init__(
        self,
        token: str,
        api_url: str = "http://api.tushare.pro",
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        retry_base_delay_seconds: float = 1.0,
    ):
        if not token:
            raise ValueError("Tushare token is required")

        self.token = token
        self.api_url = api_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.max_retries = max_retries
        self.retry_base_delay_seconds = retry_base_delay_seconds
        self.logger = logger.bind(provider=self.name)

    @classmethod
    def from_settings(cls, settings=None) -> "TushareInstrumentProvider":
        """Build a provider from application settings."""
        settings = settings or get_settings()
        return cls(
            token=settings.tushare_token,
            api_url=settings.tushare_api_url,
            timeout_seconds=settings.upstream_timeout_seconds,
            max_retries=settings.catalog_fetch_max_retries,
            retry_base_delay_seconds=settings.catalog_retry_base_delay_seconds,
        )

    async def fetch_listing(self) -> List[Dict[str, Any]]:
        """
        Fetch all listed instruments, retrying with exponential backoff.

        Returns:
            List of raw instrument dicts keyed by Tushare field name

        Raises:
            UpstreamUnavailable: If every attempt fails
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._request_stock_basic()
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                last_error = e
                self.logger.warning(
                    "Instrument listing fetch failed",
                    attempt=attempt,
                    max_retries=self.max_retries,
                    error=str(e) or type(e).__name__,
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_base_delay_seconds * 2**attempt)

        raise UpstreamUnavailable(
            self.name, str(last_error) or type(last_error).__name__
        )

    async def _request_stock_basic(self) -> List[Dict[str, Any]]:
        """Issue one stock_basic request and unpack the field/item table."""
        payload = {
            "api_name": "stock_basic",
            "token": self.token,
            "params": {"list_status": "L"},
            "fields": STOCK_BASIC_FIELDS,
        }

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.api_url, json=payload) as response:
                response.raise_for_status()
                body = await response.json(content_type=None)

        return parse_table_response(body)


def parse_table_response(body: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Convert a Tushare {"code", "msg", "data": {"fields", "items"}} body to dicts.

    Raises:
        ValueError: If the API reported an error
    """
    if not isinstance(body, dict):
        raise ValueError("Unexpected Tushare response body")

    if body.get("code") != 0:
        raise ValueError(f"Tushare API error: {body.get('msg') or 'Unknown error'}")

    data = body.get("data") or {}
    fields = data.get("fields") or []
    items = data.get("items") or []

    return [dict(zip(fields, item)) for item in items]
