"""Live quote providers."""

import asyncio
import math
import re
from typing import Iterable, List, Optional, Protocol, Tuple

import aiohttp

from ...config.logging import get_logger
from ...config.settings import get_settings
from .codes import sina_to_ts_code, ts_code_to_sina
from .models import PriceSnapshot

logger = get_logger(__name__)

SINA_LINE_PATTERN = re.compile(r'var hq_str_(\w+)="([^"]*)"')
SINA_MIN_FIELDS = 32
SINA_BATCH_SIZE = 100
SINA_REFERER = "https://finance.sina.com.cn"


class PriceProvider(Protocol):
    """Protocol for live price sources."""

    async def fetch_quotes(self, codes: Iterable[str]) -> PriceSnapshot:
        """Fetch current price and previous close for each code."""
        ...


def parse_sina_line(line: str) -> Optional[Tuple[str, float, float]]:
    """
    Parse one line of a Sina quote response.

    Args:
        line: e.g. var hq_str_sh600000="NAME,open,prev_close,price,..."

    Returns:
        (ts_code, price, previous_close), or None for an unusable line
    """
    match = SINA_LINE_PATTERN.search(line)
    if not match:
        return None

    sina_code, body = match.groups()
    fields = body.split(",")
    if len(fields) < SINA_MIN_FIELDS:
        return None

    try:
        ts_code = sina_to_ts_code(sina_code)
        previous_close = float(fields[2])
        price = float(fields[3])
    except ValueError:
        return None

    # Suspended instruments report a zero price
    if not math.isfinite(price) or price <= 0:
        return None

    return ts_code, price, previous_close


class SinaQuoteProvider:
    """Fetches real-time A-share quotes from the Sina hq endpoint."""

    name = "sina"

    def __init__(self, base_url: str = "https://hq.sinajs.cn", timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.logger = logger.bind(provider=self.name)

    @classmethod
    def from_settings(cls) -> "SinaQuoteProvider":
        settings = get_settings()
        return cls(settings.sina_quote_url, settings.upstream_timeout_seconds)

    async def fetch_quotes(self, codes: Iterable[str]) -> PriceSnapshot:
        """
        Fetch quotes for the given Tushare codes.

        Codes that cannot be converted, are missing from the response, or
        carry no valid price end up in snapshot.failed.

        Args:
            codes: Tushare-format instrument codes

        Returns:
            PriceSnapshot with prices and previous closes
        """
        snapshot = PriceSnapshot()
        wanted: List[Tuple[str, str]] = []

        for code in dict.fromkeys(c.strip().upper() for c in codes):
            try:
                wanted.append((code, ts_code_to_sina(code)))
            except ValueError as e:
                self.logger.warning("Skipping unsupported code", ts_code=code, error=str(e))
                snapshot.failed.append(code)

        if not wanted:
            return snapshot

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            for start in range(0, len(wanted), SINA_BATCH_SIZE):
                batch = wanted[start:start + SINA_BATCH_SIZE]
                await self._fetch_batch(session, batch, snapshot)

        self.logger.info(
            "Quotes fetched",
            requested=len(wanted),
            priced=len(snapshot.prices),
            failed=len(snapshot.failed),
        )
        return snapshot

    async def _fetch_batch(
        self,
        session: aiohttp.ClientSession,
        batch: List[Tuple[str, str]],
        snapshot: PriceSnapshot,
    ) -> None:
        url = f"{self.base_url}/list={','.join(sina for _, sina in batch)}"

        try:
            async with session.get(url, headers={"Referer": SINA_REFERER}) as response:
                response.raise_for_status()
                text = await response.text(encoding="gbk", errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(
                "Quote batch request failed",
                batch_size=len(batch),
                error=str(e) or type(e).__name__,
            )
            snapshot.failed.extend(code for code, _ in batch)
            return

        for line in text.splitlines():
            parsed = parse_sina_line(line)
            if parsed is None:
                continue
            ts_code, price, previous_close = parsed
            snapshot.prices[ts_code] = price
            if math.isfinite(previous_close) and previous_close > 0:
                snapshot.previous_close[ts_code] = previous_close

        for code, _ in batch:
            if code not in snapshot.prices:
                snapshot.failed.append(code)
