"""
Tests for name resolution, campaign-to-project matching and grouping.
"""

from decimal import Decimal

from ledger_engines.matching import (
    MatchStep,
    ProjectMatcher,
    compact_text,
    extract_candidate_name,
    group_weights,
    normalize_text,
    resolve_name,
    similarity,
)
from ledger_kernel.domain.records import Payee, Role

DIRECTORY = [
    Payee("p1", "Andrei Popescu", Role.COPYWRITER),
    Payee("p2", "Diana Năstase", Role.COPYWRITER),
    Payee("p3", "Maria Ionescu", Role.COPYWRITER),
]


class TestNormalization:
    def test_diacritics_case_whitespace(self):
        assert normalize_text("  Cheltuială   Comună ") == "cheltuiala comuna"

    def test_compact(self):
        assert compact_text("Diana Năstase") == "diananastase"


class TestExtractCandidateName:
    def test_camel_case_fragment(self):
        assert extract_candidate_name("fb_ads - AndreiPopescu | retarget") == "AndreiPopescu"

    def test_no_candidate(self):
        assert extract_candidate_name("generic campaign") is None
        assert extract_candidate_name(None) is None
        assert extract_candidate_name("") is None

    def test_single_capitalized_word_is_not_a_name(self):
        assert extract_candidate_name("Retarget, Lookalike") is None


class TestSimilarity:
    def test_identical(self):
        assert similarity("abc", "abc") == Decimal(1)

    def test_one_edit(self):
        # 10 chars, one substitution
        assert similarity("mariaiones", "mariaionas") == Decimal("0.9")

    def test_empty(self):
        assert similarity("", "") == Decimal(1)


class TestResolveName:
    def test_exact_ignoring_spaces_and_diacritics(self):
        resolution = resolve_name("DianaNastase", DIRECTORY)
        assert resolution.payee.id == "p2"
        assert resolution.step is MatchStep.EXACT

    def test_substring(self):
        resolution = resolve_name("AndreiPopescuCopy", DIRECTORY)
        assert resolution.payee.id == "p1"
        assert resolution.step is MatchStep.SUBSTRING

    def test_similarity_above_threshold(self):
        resolution = resolve_name("MariaIonesku", DIRECTORY)
        assert resolution.payee.id == "p3"
        assert resolution.step is MatchStep.SIMILARITY
        assert resolution.score >= Decimal("0.85")

    def test_below_threshold_unresolved(self):
        assert resolve_name("CompletelyDifferent", DIRECTORY) is None

    def test_exact_beats_similarity(self):
        directory = DIRECTORY + [Payee("p4", "Maria Ionescy", Role.COPYWRITER)]
        resolution = resolve_name("MariaIonescu", directory)
        assert resolution.payee.id == "p3"
        assert resolution.step is MatchStep.EXACT

    def test_two_similar_candidates_unresolved(self, captured_logs):
        directory = [
            Payee("a", "Maria Ionescu", Role.COPYWRITER),
            Payee("b", "Maria Ionesco", Role.COPYWRITER),
        ]
        assert resolve_name("MariaIonesca", directory) is None
        assert any(
            r["message"] == "name_ambiguous" and r["step"] == "similarity"
            for r in captured_logs()
        )

    def test_duplicate_exact_names_unresolved(self):
        directory = [Payee("a", "Ana Pop", Role.SALES), Payee("b", "ana pop", Role.SALES)]
        assert resolve_name("AnaPop", directory) is None

    def test_empty_candidate(self):
        assert resolve_name("   ", DIRECTORY) is None


class TestProjectMatcher:
    def setup_method(self):
        self.matcher = ProjectMatcher(
            ["Arta Vizibilitatii", "CODCOM", "Artok Academy"], "Cheltuială Comună"
        )

    def test_contained_project_name(self):
        assert self.matcher.match_campaign("Leads - CODCOM - Octombrie") == "CODCOM"

    def test_case_and_diacritics(self):
        assert self.matcher.match_campaign("arta vizibilității retarget") == "Arta Vizibilitatii"

    def test_first_configured_project_wins(self):
        assert self.matcher.match_campaign("CODCOM x Artok Academy") == "CODCOM"

    def test_unmatched_goes_to_shared_bucket(self):
        assert self.matcher.match_campaign("Brand awareness") == "Cheltuială Comună"
        assert self.matcher.match_campaign("") == "Cheltuială Comună"


class TestGroupWeights:
    ITEMS = [
        ("s1", "CODCOM", Decimal("100")),
        ("s2", "Artok", Decimal("50")),
        ("s3", "CODCOM", Decimal("25")),
        ("s4", None, Decimal("10")),
        ("s5", "Artok", Decimal("-20")),
        ("s6", "Artok", None),
    ]

    def _group(self, **kwargs):
        return group_weights(
            self.ITEMS,
            key=lambda item: item[1],
            weight=lambda item: item[2],
            item_id=lambda item: item[0],
            **kwargs,
        )

    def test_positive_only(self):
        groups = self._group()
        assert list(groups) == ["CODCOM", "Artok"]
        assert groups["CODCOM"].weight == Decimal("125")
        assert groups["CODCOM"].member_ids == ["s1", "s3"]
        assert groups["Artok"].count == 1

    def test_with_negative_weights(self):
        groups = self._group(positive_only=False)
        assert groups["Artok"].weight == Decimal("30")
        assert groups["Artok"].member_ids == ["s2", "s5"]
