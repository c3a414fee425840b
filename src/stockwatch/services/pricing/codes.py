"""Conversion between Tushare codes (600000.SH) and Sina codes (sh600000)."""

import re

_EXCHANGE_PREFIXES = {"SH": "sh", "SZ": "sz", "BJ": "bj"}
_SINA_CODE_PATTERN = re.compile(r"^(sh|sz|bj)(\d{6})$")


def ts_code_to_sina(ts_code: str) -> str:
    """
    Convert a Tushare code to the Sina quote format.

    Raises:
        ValueError: If the code is malformed or the exchange unsupported
    """
    symbol, _, exchange = ts_code.strip().partition(".")
    if not symbol or not exchange:
        raise ValueError(f"Invalid ts_code format: {ts_code}")

    prefix = _EXCHANGE_PREFIXES.get(exchange.upper())
    if prefix is None:
        raise ValueError(f"Unsupported exchange: {exchange}. Supported: SH, SZ, BJ")

    return f"{prefix}{symbol}".lower()


def sina_to_ts_code(sina_code: str) -> str:
    """Convert a Sina code back to the Tushare format."""
    match = _SINA_CODE_PATTERN.match(sina_code.strip().lower())
    if not match:
        raise ValueError(f"Invalid Sina code format: {sina_code}")

    prefix, symbol = match.groups()
    return f"{symbol}.{prefix.upper()}"
