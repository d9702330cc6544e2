"""Fuzzy payee resolution on top of a PayeeDirectory."""

from __future__ import annotations

from collections.abc import Collection
from decimal import Decimal

from ledger_engines.matching import DEFAULT_SIMILARITY_THRESHOLD, NameResolution, resolve_name
from ledger_kernel.domain.records import Payee, Role
from ledger_kernel.logging_config import get_logger
from ledger_services.ports import PayeeDirectory

logger = get_logger("services.payees")


class PayeeResolver:
    """
    Resolves free-text names to payees of the given roles.

    Contract:
        The directory is listed once per role set and cached for the life of
        the resolver; a resolver is created per run.
    """

    def __init__(
        self,
        directory: PayeeDirectory,
        threshold: Decimal = DEFAULT_SIMILARITY_THRESHOLD,
    ):
        self._directory = directory
        self._threshold = threshold
        self._listings: dict[frozenset[Role], list[Payee]] = {}

    async def payees_with_roles(self, roles: Collection[Role]) -> list[Payee]:
        key = frozenset(roles)
        if key not in self._listings:
            self._listings[key] = await self._directory.list_payees(key)
        return self._listings[key]

    async def resolve(self, name: str, roles: Collection[Role]) -> NameResolution | None:
        directory = await self.payees_with_roles(roles)
        resolution = resolve_name(name, directory, self._threshold)
        if resolution is None:
            logger.warning("name_unresolved", extra={
                "candidate": name,
                "roles": sorted(r.value for r in roles),
            })
        else:
            logger.debug("name_resolved", extra={
                "candidate": name,
                "payee": resolution.payee.name,
                "step": resolution.step.value,
                "score": str(resolution.score),
            })
        return resolution

    async def resolve_fuzzy(self, name: str, roles: Collection[Role]) -> Payee | None:
        resolution = await self.resolve(name, roles)
        return None if resolution is None else resolution.payee
