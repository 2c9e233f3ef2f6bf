"""
Portfolio Pricing

Market price resolution for the portfolio tracker.
"""
__version__ = "0.1.0"
