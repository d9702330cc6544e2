"""
Fixtures for service-level tests: the reconciler, a KindContext wired to
the in-memory store, and an ad spend report written to a temp file.
"""

import pytest

from ledger_engines.allocation import AllocationEngine, RoundingPolicy
from ledger_services.adapters.ad_spend_file import FileAdSpendSource
from ledger_services.kinds import KindContext
from ledger_services.payees import PayeeResolver
from ledger_services.reconciler import RecordReconciler

AD_SPEND_REPORT = """\
currency: RON
periods:
  Septembrie 2025:
    - {campaign: "Leads CODCOM Sep", spend: "999.00"}
  Octombrie 2025:
    - {campaign: "Leads CODCOM Oct", spend: "1520.40"}
    - {campaign: "CODCOM retarget", spend: "479.60"}
    - {campaign: "Brand awareness", spend: "300"}
    - {campaign: "Artok Academy webinar", spend: "0"}
"""


@pytest.fixture
def reconciler(store) -> RecordReconciler:
    return RecordReconciler(store)


@pytest.fixture
def ad_spend_file(tmp_path):
    path = tmp_path / "ad_spend.yaml"
    path.write_text(AD_SPEND_REPORT, encoding="utf-8")
    return path


@pytest.fixture
def make_context(store, config, reconciler):
    """Build a KindContext; ``ad_spend`` and ``config`` may be overridden."""

    def _make(*, ad_spend=None, config_override=None) -> KindContext:
        cfg = config_override or config
        return KindContext(
            store=store,
            config=cfg,
            engine=AllocationEngine(RoundingPolicy(cfg.rounding_policy)),
            reconciler=reconciler,
            payees=PayeeResolver(store, cfg.similarity_threshold),
            ad_spend=ad_spend,
        )

    return _make


@pytest.fixture
def ad_spend_source(ad_spend_file) -> FileAdSpendSource:
    return FileAdSpendSource(ad_spend_file)


@pytest.fixture
def expenses_by_key(store):
    """Current automatic expenses of the store, keyed by natural key."""

    def _get() -> dict:
        return {e.natural_key: e for e in store.expenses.values() if e.natural_key}

    return _get
