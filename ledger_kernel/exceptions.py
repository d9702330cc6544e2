"""
Typed exception hierarchy for the commission ledger.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerError:

    LedgerError (base)
    |
    +-- ValidationSkip             per-item data problem, counted as skipped
    +-- NoAllocatableBasisError    zero total weight, payee/period skipped
    |
    +-- StoreError
    |   +-- LookupFailureError     read failed; existence assumed
    |   +-- WriteFailureError      create/update failed after retries
    |   +-- StoreUnavailableError  transient, retried by the adapter
    |
    +-- CredentialOrConfigError    fatal for one allocation kind in one period
    |
    +-- InvalidPeriodKeyError
    |
    +-- CurrencyError
        +-- InvalidCurrencyError
        +-- CurrencyMismatchError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                   | When Raised                          | Handling
-----------------------|--------------------------------------|----------------------
VALIDATION_SKIP        | Missing project, amount <= 0,        | skipped += 1
                       | unresolved name                      |
NO_ALLOCATABLE_BASIS   | Sum of weights is zero               | skipped += 1
LOOKUP_FAILURE         | Store read failed                    | errors += 1, no write
WRITE_FAILURE          | Create/update failed (retries spent) | errors += 1
STORE_UNAVAILABLE      | Transient store outage               | retried with backoff
CREDENTIAL_OR_CONFIG   | Missing ad-spend source, non-RON     | kind aborted for the
                       | ad account, bad configuration        | period, errors += 1
INVALID_PERIOD_KEY     | Unknown month name / malformed key   | rejected at the trigger
INVALID_CURRENCY       | Unknown ISO 4217 code                | propagates
CURRENCY_MISMATCH      | Arithmetic across currencies         | propagates

Counts are returned per allocation kind and period.  No LedgerError
escapes a single kind's per-period boundary under normal operation.
"""


class LedgerError(Exception):
    """
    Base exception for all commission ledger errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "LEDGER_ERROR"


class ValidationSkip(LedgerError):
    """A single input item cannot be processed and is skipped."""

    code: str = "VALIDATION_SKIP"

    def __init__(self, item_ref: str, reason: str):
        self.item_ref = item_ref
        self.reason = reason
        super().__init__(f"Skipping {item_ref}: {reason}")


class NoAllocatableBasisError(LedgerError):
    """Proportional allocation requested over a zero total weight."""

    code: str = "NO_ALLOCATABLE_BASIS"

    def __init__(self, amount: str, target_count: int):
        self.amount = amount
        self.target_count = target_count
        super().__init__(
            f"No allocatable basis for {amount} across {target_count} target(s)"
        )


# Store-related exceptions


class StoreError(LedgerError):
    """Base exception for record store failures."""

    code: str = "STORE_ERROR"


class LookupFailureError(StoreError):
    """A read against the record store failed."""

    code: str = "LOOKUP_FAILURE"

    def __init__(self, operation: str, key: str, cause: str = ""):
        self.operation = operation
        self.key = key
        self.cause = cause
        super().__init__(f"Lookup failed in {operation} for {key}: {cause}")


class WriteFailureError(StoreError):
    """A create or update against the record store failed."""

    code: str = "WRITE_FAILURE"

    def __init__(self, operation: str, key: str, attempts: int, cause: str = ""):
        self.operation = operation
        self.key = key
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Write failed in {operation} for {key} after {attempts} attempt(s): {cause}"
        )


class StoreUnavailableError(StoreError):
    """Transient store failure; the adapter layer retries it."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, cause: str = ""):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Store unavailable during {operation}: {cause}")


class CredentialOrConfigError(LedgerError):
    """Missing credentials or inconsistent configuration for a whole kind."""

    code: str = "CREDENTIAL_OR_CONFIG"

    def __init__(self, component: str, detail: str):
        self.component = component
        self.detail = detail
        super().__init__(f"{component}: {detail}")


class InvalidPeriodKeyError(LedgerError):
    """Period key text is not '<MonthName> <Year>' with a known month."""

    code: str = "INVALID_PERIOD_KEY"

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid period key {value!r}: {reason}")


# Currency-related exceptions


class CurrencyError(LedgerError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Invalid or unsupported ISO 4217 currency code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class CurrencyMismatchError(CurrencyError):
    """Attempted operation on mismatched currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str):
        self.currency1 = currency1
        self.currency2 = currency2
        super().__init__(f"Currency mismatch: {currency1} vs {currency2}")
