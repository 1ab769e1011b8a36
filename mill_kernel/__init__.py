"""
Mill Kernel

Persistence, ledger and stock primitives for the textile mill ERP:
- Company-scoped inventory items with a single stock mutation path
- Append-only stock movement audit trail
- Locked-counter document numbering
- Typed errors and structured logging shared by every module
"""

__version__ = "0.1.0"
