"""Oil stock ledger: stock-in, stock-out and FIFO batch accounting."""

__version__ = "1.0.0"
