"""Environment-driven settings for the watchlist sync engine."""
