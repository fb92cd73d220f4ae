"""
BTC price dashboard core: historical series, live merge and price readout
for Binance BTCUSDT.
"""

__version__ = "0.1.0"
