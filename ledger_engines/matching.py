"""
Module: ledger_engines.matching
Responsibility:
    Name extraction from free-text campaign tags, fuzzy resolution of names
    against the payee directory, campaign-to-project matching, and the
    grouping of weighted items by (payee, project, role).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Services fetch the
    directory and pass it in.

Invariants enforced:
    - Resolution order is fixed: exact (case-insensitive), then substring
      containment either way, then Levenshtein similarity >= threshold.
      An exact match always wins over the later steps.
    - More than one candidate at the deciding step resolves to None;
      the engine never picks arbitrarily.
    - Grouping keys carry the role, so one person in two roles never lands
      in one bucket.
    - Unmatched campaigns go to the configured shared bucket.

Failure modes:
    - None raised; unresolved names return None and are logged by callers.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Generic, TypeVar

from rapidfuzz.distance import Levenshtein

from ledger_kernel.domain.records import Payee
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.matching")

DEFAULT_SIMILARITY_THRESHOLD = Decimal("0.85")

_TAG_SEPARATORS = re.compile(r"[,;|\-\n]")
_CAMEL_NAME = re.compile(r"^(?:[A-Z][a-z]+){2,}$")
_WHITESPACE = re.compile(r"\s+")

T = TypeVar("T")


def normalize_text(value: str) -> str:
    """Strip diacritics, casefold and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped.casefold()).strip()


def compact_text(value: str) -> str:
    """``normalize_text`` with all whitespace removed."""
    return normalize_text(value).replace(" ", "")


def extract_candidate_name(tag: str | None) -> str | None:
    """
    First fragment of a campaign tag that looks like a concatenated name.

    ``"fb_ads - AndreiPopescu | retarget"`` -> ``"AndreiPopescu"``.
    """
    if not tag:
        return None
    for fragment in _TAG_SEPARATORS.split(tag):
        candidate = fragment.strip()
        if len(candidate) >= 3 and _CAMEL_NAME.match(candidate):
            return candidate
    return None


def similarity(a: str, b: str) -> Decimal:
    """``(len(longer) - distance) / len(longer)`` in [0, 1]."""
    longer = max(len(a), len(b))
    if longer == 0:
        return Decimal(1)
    distance = Levenshtein.distance(a, b)
    return Decimal(longer - distance) / Decimal(longer)


class MatchStep(str, Enum):
    EXACT = "exact"
    SUBSTRING = "substring"
    SIMILARITY = "similarity"


@dataclass(frozen=True)
class NameResolution:
    payee: Payee
    step: MatchStep
    score: Decimal


def resolve_name(
    candidate: str,
    directory: Sequence[Payee],
    threshold: Decimal = DEFAULT_SIMILARITY_THRESHOLD,
) -> NameResolution | None:
    """
    Resolve a free-text name against the directory.

    Comparison ignores case, diacritics and spaces, so ``"AndreiPopescu"``
    matches the directory entry ``"Andrei Popescu"`` exactly.
    """
    needle = compact_text(candidate)
    if not needle:
        return None
    entries = [(p, compact_text(p.name)) for p in directory if p.name and p.name.strip()]

    exact = [p for p, name in entries if name == needle]
    if exact:
        if len(exact) > 1:
            logger.warning("name_ambiguous", extra={"candidate": candidate, "step": "exact"})
            return None
        return NameResolution(exact[0], MatchStep.EXACT, Decimal(1))

    contained = [p for p, name in entries if needle in name or name in needle]
    if len(contained) == 1:
        return NameResolution(contained[0], MatchStep.SUBSTRING, Decimal(1))
    if len(contained) > 1:
        logger.warning("name_ambiguous", extra={
            "candidate": candidate,
            "step": "substring",
            "matches": [p.name for p in contained],
        })
        return None

    scored = [(p, similarity(needle, name)) for p, name in entries]
    qualifying = [(p, s) for p, s in scored if s >= threshold]
    if len(qualifying) == 1:
        payee, score = qualifying[0]
        return NameResolution(payee, MatchStep.SIMILARITY, score)
    if len(qualifying) > 1:
        logger.warning("name_ambiguous", extra={
            "candidate": candidate,
            "step": "similarity",
            "matches": [p.name for p, _ in qualifying],
        })
    return None


class ProjectMatcher:
    """
    Maps ad-campaign names onto project names.

    Contract:
        A campaign belongs to the first configured project whose normalized
        name is contained in the normalized campaign name; otherwise it
        belongs to ``shared_bucket``.
    """

    def __init__(self, projects: Sequence[str], shared_bucket: str):
        self._projects = tuple(projects)
        self._normalized = tuple(normalize_text(p) for p in projects)
        self._shared_bucket = shared_bucket

    @property
    def shared_bucket(self) -> str:
        return self._shared_bucket

    def match_campaign(self, campaign_name: str) -> str:
        haystack = normalize_text(campaign_name or "")
        for project, needle in zip(self._projects, self._normalized):
            if needle and needle in haystack:
                return project
        return self._shared_bucket


@dataclass
class WeightedGroup(Generic[T]):
    """Accumulated weight and member ids for one grouping key."""

    key: T
    weight: Decimal = Decimal(0)
    member_ids: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.member_ids)


def group_weights(
    items: Iterable[T],
    key: Callable[[T], object | None],
    weight: Callable[[T], Decimal | None],
    item_id: Callable[[T], str],
    *,
    positive_only: bool = True,
) -> dict[object, WeightedGroup]:
    """
    Sum weights per key, preserving first-seen key order.

    Items whose key is None are ignored.  With ``positive_only`` items
    whose weight is missing or <= 0 are ignored as well; otherwise
    negative weights (refunds) are summed in.
    """
    groups: dict[object, WeightedGroup] = {}
    for item in items:
        k = key(item)
        if k is None:
            continue
        w = weight(item)
        if w is None or (positive_only and w <= 0):
            continue
        group = groups.get(k)
        if group is None:
            group = groups[k] = WeightedGroup(key=k)
        group.weight += w
        group.member_ids.append(item_id(item))
    return groups
