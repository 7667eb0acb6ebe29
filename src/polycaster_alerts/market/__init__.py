"""Market data layer - current prices from Polymarket."""

from polycaster_alerts.market.client import (
    GammaMarketClient,
    RateLimiter,
    market_price_from_gamma,
    parse_outcome_prices,
)

__all__ = [
    "GammaMarketClient",
    "RateLimiter",
    "market_price_from_gamma",
    "parse_outcome_prices",
]
