"""Seed prices and per-symbol parameters for the quote simulator."""

# Starting prices for the default catalog
SEED_PRICES: dict[str, float] = {
    "TSLA": 242.84,
    "AMZN": 178.25,
    "GOOGL": 163.57,
    "AAPL": 229.87,
    "NVDA": 138.07,
    "MSFT": 416.56,
    "META": 567.33,
    "NFLX": 701.35,
    "AMD": 143.89,
    "INTC": 22.45,
}

DEFAULT_SYMBOLS: list[str] = ["TSLA", "AMZN", "GOOGL", "AAPL", "NVDA", "MSFT"]

# Per-symbol GBM parameters
# sigma: annualized volatility, mu: annualized drift
SYMBOL_PARAMS: dict[str, dict[str, float]] = {
    "TSLA": {"sigma": 0.50, "mu": 0.03},
    "AMZN": {"sigma": 0.28, "mu": 0.05},
    "GOOGL": {"sigma": 0.25, "mu": 0.05},
    "AAPL": {"sigma": 0.22, "mu": 0.05},
    "NVDA": {"sigma": 0.40, "mu": 0.08},
    "MSFT": {"sigma": 0.20, "mu": 0.05},
    "META": {"sigma": 0.30, "mu": 0.05},
    "NFLX": {"sigma": 0.35, "mu": 0.05},
    "AMD": {"sigma": 0.45, "mu": 0.06},
    "INTC": {"sigma": 0.35, "mu": 0.00},
}

# Symbols outside the catalog
DEFAULT_PARAMS: dict[str, float] = {"sigma": 0.25, "mu": 0.05}
