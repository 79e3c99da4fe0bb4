"""
Stock Price Aggregation & Correlation Service

Proxies an upstream stock-price evaluation API, computes average prices and
pairwise Pearson correlation, and serves the results as JSON.
"""

__version__ = "0.1.0"
