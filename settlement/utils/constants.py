"""Shared constants and small parsing helpers for trade terms."""

import re
from datetime import timedelta

STATUS_OPEN = "OPEN"
STATUS_CLOSED = "CLOSED"
VALID_STATUSES = [STATUS_OPEN, STATUS_CLOSED]

SIDE_BUY = "buy"
SIDE_SELL = "sell"

# Directional labels used by different clients for the same two sides
SIDE_ALIASES: dict[str, str] = {
    "buy": SIDE_BUY,
    "long": SIDE_BUY,
    "buy up": SIDE_BUY,
    "sell": SIDE_SELL,
    "short": SIDE_SELL,
    "buy fall": SIDE_SELL,
}

OUTCOME_WIN = "WIN"
OUTCOME_LOSS = "LOSS"
VALID_OUTCOMES = [OUTCOME_WIN, OUTCOME_LOSS]

CLOSE_MANUAL = "manual"
CLOSE_ADMIN = "admin"
CLOSE_STOP_LOSS = "stop_loss"
CLOSE_TAKE_PROFIT = "take_profit"
CLOSE_EXPIRED = "expired"

# Human labels used in fund transaction descriptions
CLOSE_REASON_LABELS: dict[str, str] = {
    CLOSE_STOP_LOSS: "Stop Loss",
    CLOSE_TAKE_PROFIT: "Take Profit",
    CLOSE_EXPIRED: "Expired",
}

# Longest suffix first so "USDT" wins over "USD"
QUOTE_CURRENCIES = ["USDT", "USDC", "BUSD", "USD", "EUR", "BTC", "ETH"]

_DURATION_RE = re.compile(r"^(\d+)([mhd])$", re.IGNORECASE)
_DURATION_UNITS = {"m": "minutes", "h": "hours", "d": "days"}


def normalize_side(side: str) -> str:
    """Map any accepted side label to "buy" or "sell"."""
    key = " ".join(str(side or "").strip().lower().replace("_", " ").split())
    if key not in SIDE_ALIASES:
        raise ValueError(f"Unknown side: {side!r}")
    return SIDE_ALIASES[key]


def parse_duration(value: str) -> timedelta:
    """Parse a fixed trade duration such as "1m", "15m", "1h" or "1d"."""
    m = _DURATION_RE.match(str(value or "").strip())
    if not m:
        raise ValueError("Invalid duration; use e.g. 1m, 5m, 15m, 1h")
    amount, unit = int(m.group(1)), m.group(2).lower()
    return timedelta(**{_DURATION_UNITS[unit]: amount})


def quote_currency(pair: str, default: str = "USDT") -> str:
    """Return the quote asset of a pair like "BTCUSDT", "BTC/USDT" or "BTC-USDT"."""
    text = str(pair or "").strip().upper()
    for sep in ("/", "-", "_"):
        if sep in text:
            return text.rsplit(sep, 1)[1] or default
    for quote in QUOTE_CURRENCIES:
        if text.endswith(quote) and len(text) > len(quote):
            return quote
    return default
