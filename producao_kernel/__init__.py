"""
Produção Kernel

Shared foundation for the cooperative production allocation engine:
- Structured JSON logging with run-scoped context
- Typed exception hierarchy with machine-readable codes
- Injectable clock and Decimal money helpers
- Pure domain records for workers, clients, time and revenue facts
- SQLAlchemy models for the locally synced source tables
"""

__version__ = "0.1.0"
