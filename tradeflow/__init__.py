"""TradeFlow: OANDA trade journal reconciliation and historical-context engine."""

__version__ = "0.1.0"
