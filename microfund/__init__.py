"""
Microfund

Branch-scoped microfinance bookkeeping: clients, loan and savings products,
bank accounts and an append-only transaction log, with fund positions derived
from the log on demand using Decimal arithmetic throughout.
"""

__version__ = "1.0.0"
