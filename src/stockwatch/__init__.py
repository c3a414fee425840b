"""Stock watchlist and alert-rule engine."""

__version__ = "0.1.0"
