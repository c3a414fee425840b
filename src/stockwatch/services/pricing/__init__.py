"""Live price snapshots for rule evaluation."""

from .codes import sina_to_ts_code, ts_code_to_sina
from .models import PriceSnapshot
from .provider import PriceProvider, SinaQuoteProvider, parse_sina_line

__all__ = [
    "PriceProvider",
    "PriceSnapshot",
    "SinaQuoteProvider",
    "parse_sina_line",
    "sina_to_ts_code",
    "ts_code_to_sina",
]
