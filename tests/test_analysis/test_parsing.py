"""
Tests for completion-reply parsing.

What we test
------------
extract_recommendation:
  - Finds a bracketed or standalone A / C / Z, case-insensitive.
  - A bracketed tag wins over a bare letter such as the article "a".
  - Ignores letters inside words ("Après", "Zone").
  - Returns None when nothing matches (never defaults to Z).

clean_insight / salvage_json_object:
  - Leading tags and "justification:" words are stripped.
  - JSON is recovered from fenced or chatty replies; garbage raises.

parse_single_response / parse_batch_response:
  - JSON first, free text as fallback.
  - Batch keys in either vocabulary; unrequested and repeated ids dropped.
"""

from __future__ import annotations

import pytest

from gamme_advisor.analysis.parsing import (
    clean_insight,
    extract_recommendation,
    parse_batch_response,
    parse_category,
    parse_single_response,
    salvage_json_object,
)
from gamme_advisor.errors import MalformedResponseError
from gamme_advisor.models.taxonomy import Category


class TestExtractRecommendation:
    def test_bracketed_after_accented_word(self):
        assert extract_recommendation("Après analyse: [A] - Bonne rotation") == Category.A

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("[Z] Ventes trop faibles", Category.Z),
            ("Recommendation: c", Category.C),
            ("z - exit", Category.Z),
        ],
    )
    def test_standalone_tokens(self, text, expected):
        assert extract_recommendation(text) == expected

    def test_bracketed_tag_beats_article(self):
        assert extract_recommendation("This is a weak product [Z]") == Category.Z
        assert extract_recommendation("a steady seller, see [ c ]") == Category.C

    def test_letters_inside_words_ignored(self):
        assert extract_recommendation("Zone Alimentaire Centrale") is None

    def test_no_token(self):
        assert extract_recommendation("No clear verdict") is None

    def test_empty(self):
        assert extract_recommendation("") is None


class TestCleanInsight:
    def test_strips_tag(self):
        assert clean_insight("[A] - Bonne rotation") == "Bonne rotation"

    def test_strips_leading_word(self):
        assert clean_insight("Justification: steady sales") == "steady sales"


class TestSalvageJsonObject:
    def test_plain(self):
        assert salvage_json_object('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        text = 'Here you go:\n```json\n{"results": []}\n```'
        assert salvage_json_object(text) == {"results": []}

    def test_garbage_raises(self):
        with pytest.raises(MalformedResponseError):
            salvage_json_object("no json at all")

    def test_broken_object_raises(self):
        with pytest.raises(MalformedResponseError):
            salvage_json_object('{"results": [}')


class TestParseCategory:
    def test_vocabulary(self):
        assert parse_category("b") == Category.B
        assert parse_category("B", {Category.A, Category.C, Category.Z}) is None
        assert parse_category(3) is None


class TestParseSingleResponse:
    def test_json_reply(self):
        parsed = parse_single_response(
            '{"rule_applies": true, "recommendation": "C", "justification": "Seasonal peak."}'
        )
        assert parsed.recommendation == Category.C
        assert parsed.justification == "Seasonal peak."
        assert parsed.rule_applies is True

    def test_free_text_reply(self):
        parsed = parse_single_response("[Z] - Aucune vente depuis 6 mois")
        assert parsed.recommendation == Category.Z
        assert parsed.justification == "Aucune vente depuis 6 mois"

    def test_no_recommendation_stays_none(self):
        assert parse_single_response("I cannot decide.").recommendation is None

    def test_out_of_vocabulary_json_letter(self):
        parsed = parse_single_response('{"recommendation": "B", "justification": "hmm"}')
        assert parsed.recommendation is None


class TestParseBatchResponse:
    def test_standard_keys(self):
        text = (
            '{"results": [{"id": "P1", "recommendation": "A", "isDuplicate": false, '
            '"justification": "Strong."}, {"id": "P2", "recommendation": "z", '
            '"isDuplicate": true, "justification": "Weak."}]}'
        )
        items = parse_batch_response(text, ["P1", "P2"])
        assert [i.id for i in items] == ["P1", "P2"]
        assert items[1].recommendation == Category.Z
        assert items[1].is_duplicate is True

    def test_alternate_keys(self):
        text = '{"results": [{"codein": 42, "recommandationGamme": "C", "justificationCourte": "Été."}]}'
        items = parse_batch_response(text, ["42"])
        assert items[0].id == "42"
        assert items[0].recommendation == Category.C
        assert items[0].justification == "Été."

    def test_unrequested_and_repeated_ids_dropped(self):
        text = (
            '{"results": [{"id": "P1", "recommendation": "A"}, {"id": "X", "recommendation": "A"},'
            ' {"id": "P1", "recommendation": "Z"}]}'
        )
        items = parse_batch_response(text, ["P1"])
        assert len(items) == 1
        assert items[0].recommendation == Category.A

    def test_missing_results_raises(self):
        with pytest.raises(MalformedResponseError):
            parse_batch_response('{"items": []}', ["P1"])
