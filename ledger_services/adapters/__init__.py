"""
Store and data-source adapters.

``InMemoryRecordStore`` backs tests and dry runs, ``SqlRecordStore`` backs
a database, and ``PacedRecordStore`` adds pacing and write retries on top
of either.  ``FileAdSpendSource`` reads an exported ad-account report.
"""

from ledger_services.adapters.ad_spend_file import FileAdSpendSource
from ledger_services.adapters.memory_store import InMemoryRecordStore
from ledger_services.adapters.paced_store import PacedRecordStore
from ledger_services.adapters.sql_store import SqlRecordStore

__all__ = [
    "FileAdSpendSource",
    "InMemoryRecordStore",
    "PacedRecordStore",
    "SqlRecordStore",
]
