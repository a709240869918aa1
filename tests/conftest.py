# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Shared Test Fixtures
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────

import csv
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from safeintel.core import (
    CHECK_TYPES,
    ComplianceAssistant,
    EmbeddingIndexer,
    HintParser,
    IndexLoader,
    MockCompletionProvider,
    MockEmbeddingProvider,
    RelativeDateResolver,
    SafeIntelConfig,
    extract_facts,
)
from safeintel.core.checks import COLUMN_SUFFIXES
from safeintel.core.metrics import metrics

LONDON = ZoneInfo("Europe/London")

# Monday 22 September 2025, mid-morning in London.
FIXED_NOW = datetime(2025, 9, 22, 10, 0, tzinfo=LONDON)


def check_row(key, name, date, **groups):
    """One CSV row; each keyword is ``Type=(checks, done, passed, comp, pass)``."""
    row = {"restaurant_key": key, "restaurant_name": name, "date": date}
    for check_type, (checks, done, passed, comp, pass_ratio) in groups.items():
        row[f"{check_type}-NumberOfChecks"] = str(checks)
        row[f"{check_type}-NumberOfCompletedChecks"] = str(done)
        row[f"{check_type}-NumberOfPassedChecks"] = str(passed)
        row[f"{check_type}-CompletionRatio"] = str(comp)
        row[f"{check_type}-PassRatio"] = str(pass_ratio)
    return row


def write_csv(path, rows):
    fields = ["restaurant_key", "restaurant_name", "date"] + [
        f"{t}-{s}" for t in CHECK_TYPES for s in COLUMN_SUFFIXES
    ]
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fields, restval="")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.enabled = True
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def rows():
    """Five rows: the fourth repeats the first and yields no new facts."""
    return [
        check_row(
            "74",
            "Camden,",
            "20/09/2025",
            Opening_Check=(13, 13, 13, 1, 1),
            Fridge_AM=(4, 4, 3, 1, 0.75),
            Closing_Check=(0, 0, 0, 0, 0),
        ),
        check_row(
            "74",
            "Camden",
            "21/09/2025",
            Opening_Check=(10, 8, 8, 0.8, 1),
            Fridge_PM=(4, 4, 4, 1, 1),
        ),
        check_row(
            "12",
            "Soho",
            "19/09/2025",
            Cooking=(6, 6, 5, 1, 0.8333),
            Hot_Holding=(5, 3, 2, 0.6, 0.6667),
        ),
        check_row(
            "74",
            "Camden",
            "20/09/2025",
            Opening_Check=(13, 13, 13, 1, 1),
            Fridge_AM=(4, 4, 3, 1, 0.75),
        ),
        check_row("12", "Soho", "18/09/2025", Cooling_of_Hot_Food=(2, 2, 2, 1, 1)),
    ]


@pytest.fixture
def csv_path(tmp_path, rows):
    return write_csv(tmp_path / "checks.csv", rows)


@pytest.fixture
def facts(rows):
    return extract_facts(rows)


@pytest.fixture
def embedder():
    """Deterministic offline embedder; ``embedder.calls`` counts requests."""
    return MockEmbeddingProvider(dim=64)


@pytest.fixture
def index_dir(tmp_path, facts, embedder):
    out = tmp_path / "index"
    EmbeddingIndexer(embedder, sleep=lambda s: None).build(facts, str(out))
    return out


@pytest.fixture
def index(index_dir):
    return IndexLoader(index_dir).load()


@pytest.fixture
def parser():
    return HintParser(RelativeDateResolver("Europe/London", now=lambda: FIXED_NOW))


@pytest.fixture
def offline_config(index_dir):
    return SafeIntelConfig(
        embedding_provider="mock",
        llm_provider="mock",
        data_dir=str(index_dir),
        profile="offline",
    )


@pytest.fixture
def completer():
    return MockCompletionProvider()


@pytest.fixture
def assistant(index_dir, embedder, completer, offline_config):
    return ComplianceAssistant(
        IndexLoader(index_dir),
        embedder,
        completer,
        offline_config,
        now=lambda: FIXED_NOW,
    )
