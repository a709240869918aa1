# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Fact Extractor Tests
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────

import pytest
from conftest import check_row, write_csv

from safeintel.core.exceptions import ConfigError, ValidationError
from safeintel.core.facts import (
    BuildFilters,
    as_number,
    dedupe_facts,
    extract_facts,
    facts_from_row,
    make_sentence,
    read_rows,
)


@pytest.mark.consumer
class TestMakeSentence:
    def test_canonical_template(self, rows):
        text = make_sentence(rows[0], "Opening_Check")
        assert text == (
            "On 2025-09-20, restaurant 74 (Camden) — Opening Check: "
            "checks=13 completed=13 passed=13 (comp=100%, pass=100%)."
        )

    def test_partial_pass_ratio(self, rows):
        text = make_sentence(rows[0], "Fridge_AM")
        assert "Fridge AM: checks=4 completed=4 passed=3" in text
        assert "(comp=100%, pass=75%)" in text

    def test_no_activity_returns_none(self, rows):
        assert make_sentence(rows[0], "Closing_Check") is None
        assert make_sentence(rows[0], "Defrosting") is None

    def test_name_omitted_when_blank(self):
        row = check_row("9", "", "01/02/2025", Cooking=(1, 1, 1, 1, 1))
        text = make_sentence(row, "Cooking")
        assert text.startswith("On 2025-02-01, restaurant 9 — Cooking:")

    def test_trailing_comma_stripped_from_name(self):
        row = check_row("9", "Soho , ", "01/02/2025", Cooking=(1, 1, 1, 1, 1))
        assert "(Soho)" in make_sentence(row, "Cooking")

    def test_half_percent_rounds_up(self):
        row = check_row("9", "", "01/02/2025", Cooking=(8, 1, 1, 0.125, 1))
        assert "comp=13%" in make_sentence(row, "Cooking")

    def test_unparsable_numbers_read_as_zero(self):
        row = check_row("9", "", "01/02/2025", Cooking=("n/a", "", "x", 0.5, "bad"))
        text = make_sentence(row, "Cooking")
        assert "checks=0 completed=0 passed=0 (comp=50%, pass=0%)" in text

    def test_unparsable_date_passes_through(self):
        row = check_row("9", "", "sometime", Cooking=(1, 1, 1, 1, 1))
        assert make_sentence(row, "Cooking").startswith("On sometime,")

    def test_fractional_counts_keep_full_precision(self):
        row = check_row("9", "", "20/09/2025", Cooking=(1234567.5, 1234567.5, 0.125, 1, 0))
        text = make_sentence(row, "Cooking")
        assert "checks=1234567.5 completed=1234567.5 passed=0.125 " in text


class TestAsNumber:
    @pytest.mark.parametrize(
        "raw,expected",
        [("3", 3.0), ("0.75", 0.75), ("", 0.0), (None, 0.0), ("abc", 0.0), ("nan", 0.0)],
    )
    def test_values(self, raw, expected):
        assert as_number(raw) == expected


@pytest.mark.consumer
class TestFactsFromRow:
    def test_ids_and_meta(self, rows):
        facts = facts_from_row(rows[0], 0)
        assert [f.id for f in facts] == ["row1-Fridge_AM", "row1-Opening_Check"]
        meta = facts[1].meta
        assert meta.type == "Opening_Check"
        assert meta.restaurant_key == "74"
        assert meta.restaurant_name == "Camden"
        assert meta.date_iso == "2025-09-20"

    def test_year_filter(self, rows):
        assert facts_from_row(rows[0], 0, BuildFilters(year=2024)) == []
        assert len(facts_from_row(rows[0], 0, BuildFilters(year=2025))) == 2

    def test_since_filter(self, rows):
        assert facts_from_row(rows[2], 2, BuildFilters(since="2025-09-20")) == []

    def test_types_allow_list(self, rows):
        facts = facts_from_row(rows[0], 0, BuildFilters(types=["Opening_Check"]))
        assert [f.meta.type for f in facts] == ["Opening_Check"]


@pytest.mark.consumer
class TestExtractFacts:
    def test_duplicate_rows_deduplicated(self, rows):
        facts = extract_facts(rows)
        texts = [f.text for f in facts]
        assert len(texts) == len(set(texts))
        assert len(facts) == 7
        assert not any(f.id.startswith("row4-") for f in facts)

    def test_first_occurrence_wins(self, facts):
        dupes = dedupe_facts(facts + facts)
        assert [f.id for f in dupes] == [f.id for f in facts]

    def test_limit_applies_to_rows(self, rows):
        facts = extract_facts(rows, BuildFilters(limit=1))
        assert {f.id for f in facts} == {"row1-Fridge_AM", "row1-Opening_Check"}

    def test_max_facts_trims_after_dedupe(self, rows):
        facts = extract_facts(rows, BuildFilters(max_facts=3))
        assert [f.id for f in facts] == [
            "row1-Fridge_AM",
            "row1-Opening_Check",
            "row2-Fridge_PM",
        ]

    def test_since_keeps_newer_rows(self, rows):
        facts = extract_facts(rows, BuildFilters(since="2025-09-20"))
        assert len(facts) == 4


class TestBuildFilters:
    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError, match="Unknown check types"):
            BuildFilters(types=["Opening_Check", "Bogus"])

    def test_bad_limits_rejected(self):
        with pytest.raises(ValidationError):
            BuildFilters(limit=0)
        with pytest.raises(ValidationError):
            BuildFilters(max_facts=-1)

    def test_default_is_all_types(self):
        assert len(BuildFilters().active_types) == 14


class TestReadRows:
    def test_reads_header_keyed_rows(self, csv_path):
        rows = read_rows(csv_path)
        assert len(rows) == 5
        assert rows[0]["restaurant_key"] == "74"
        assert rows[0]["Opening_Check-NumberOfChecks"] == "13"

    def test_skips_empty_lines(self, tmp_path, rows):
        path = write_csv(tmp_path / "c.csv", rows[:1])
        with open(path, "a", encoding="utf-8") as f:
            f.write("\n,,\n")
        assert len(read_rows(path)) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="CSV not found"):
            read_rows(tmp_path / "nope.csv")
