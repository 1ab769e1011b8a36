"""
Mill business modules.

- ``production`` -- stage entries and lot carry-forward.
- ``scrap`` -- scrap ledger over inventory items.

Modules import from ``mill_kernel`` and ``mill_config``; the kernel never
imports from here (except the lazy ORM registry import in create_tables).
"""
