"""Trade journal ledger: trade plans, executions and performance."""

__version__ = "1.0.0"
