"""
Ledger Kernel

Domain values, records and enums, the typed exception hierarchy,
structured logging, and SQLAlchemy persistence for the commission
ledger.  The kernel imports nothing from the engines, services or
config packages.
"""

__version__ = "0.1.0"
