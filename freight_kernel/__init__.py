"""
Freight Kernel - settlement and receivables core

A single-currency back-office ledger for freight operations with:
- Deterministic money and period arithmetic
- Locked counter sequences for invoice and settlement numbers
- Typed, coded exceptions
- Structured JSON logging
- Explicit transaction boundaries
"""

__version__ = "0.1.0"
