# ─────────────────────────────────────────────────────────────────────
# SafeIntel — CLI Tests
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────

import json

import pytest

from safeintel.cli import _parse_opts, main
from safeintel.core.index_store import SIDECAR_NAME, vectors_path


class TestCLIHelp:
    def test_help_flag(self, capsys):
        main(["--help"])
        captured = capsys.readouterr()
        assert "SafeIntel CLI" in captured.out
        assert "Commands:" in captured.out

    def test_no_args_shows_help(self, capsys):
        main([])
        assert "SafeIntel CLI" in capsys.readouterr().out

    def test_unknown_command(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["foobar"])
        assert exc_info.value.code == 1
        assert "Unknown command: foobar" in capsys.readouterr().out


class TestVersionCommand:
    def test_version(self, capsys):
        main(["version"])
        out = capsys.readouterr().out
        assert out.startswith("safeintel ")
        assert len(out.strip().split()[-1].split(".")) == 3


class TestParseOpts:
    def test_equals_and_space_forms(self):
        opts, pos = _parse_opts(["--since=2025-01-01", "--limit", "5", "hello"])
        assert opts == {"since": "2025-01-01", "limit": "5"}
        assert pos == ["hello"]

    def test_bool_flags_do_not_consume(self):
        opts, pos = _parse_opts(["--json", "question"])
        assert opts == {"json": True}
        assert pos == ["question"]

    def test_aliases(self):
        opts, _ = _parse_opts(["--max-facts=3", "--last-user-text", "hi"])
        assert opts == {"maxFacts": "3", "last": "hi"}


@pytest.mark.integration
class TestBuildCommand:
    def _build(self, csv_path, out, *extra):
        main(["build", "--profile", "offline", f"--csv={csv_path}", f"--out={out}", *extra])

    def test_build_writes_index(self, capsys, csv_path, tmp_path):
        out = tmp_path / "kb"
        self._build(csv_path, out)
        text = capsys.readouterr().out
        assert "Facts:    7" in text
        assert "Dim:      64" in text
        assert "Model:    mock/hash-64" in text
        assert (out / SIDECAR_NAME).is_file()
        assert vectors_path(out).is_file()

    def test_max_facts(self, capsys, csv_path, tmp_path):
        self._build(csv_path, tmp_path / "kb", "--maxFacts=3")
        assert "Facts:    3" in capsys.readouterr().out

    def test_since(self, capsys, csv_path, tmp_path):
        self._build(csv_path, tmp_path / "kb", "--since", "2025-09-20")
        assert "Facts:    4" in capsys.readouterr().out

    def test_types(self, capsys, csv_path, tmp_path):
        self._build(csv_path, tmp_path / "kb", "--types=Opening_Check,Cooking")
        assert "Facts:    3" in capsys.readouterr().out

    def test_unknown_type(self, capsys, csv_path, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            self._build(csv_path, tmp_path / "kb", "--types=Bogus")
        assert exc_info.value.code == 1
        assert "Unknown check types" in capsys.readouterr().out

    def test_bad_integer(self, capsys, csv_path, tmp_path):
        with pytest.raises(SystemExit):
            self._build(csv_path, tmp_path / "kb", "--limit=lots")
        assert "--limit must be an integer" in capsys.readouterr().out

    def test_missing_csv(self, capsys, tmp_path):
        with pytest.raises(SystemExit):
            self._build(tmp_path / "absent.csv", tmp_path / "kb")
        assert "Error:" in capsys.readouterr().out


@pytest.mark.integration
class TestQueryCommands:
    def _offline(self, index_dir):
        return ["--profile", "offline", "--data-dir", str(index_dir)]

    def test_ask_exact(self, capsys, index_dir):
        main(["ask", "Opening Check for restaurant 74 on 20/09/2025", *self._offline(index_dir)])
        out = capsys.readouterr().out
        assert "20th September 2025" in out
        assert "Path:     exact" in out
        assert "Used:     row1-Opening_Check" in out
        assert "Narrowed: 1" in out

    def test_ask_json(self, capsys, index_dir):
        main(
            [
                "ask",
                "Opening Check for restaurant 74 on 20/09/2025",
                "--json",
                *self._offline(index_dir),
            ]
        )
        data = json.loads(capsys.readouterr().out)
        assert data["used"] == ["row1-Opening_Check"]
        assert data["narrowedCount"] == 1

    def test_ask_missing_question(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["ask"])
        assert exc_info.value.code == 1
        assert "Usage: safeintel ask" in capsys.readouterr().out

    def test_ask_without_index(self, capsys, tmp_path):
        with pytest.raises(SystemExit):
            main(["ask", "anything", *self._offline(tmp_path / "none")])
        assert "Index file not found" in capsys.readouterr().out

    def test_suggest(self, capsys, index_dir):
        main(["suggest", "--last", "restaurant 12", *self._offline(index_dir)])
        lines = capsys.readouterr().out.strip().splitlines()
        assert lines == [
            "Cooking for restaurant 12 on 19/09/2025",
            "Hot Holding for restaurant 12 on 19/09/2025",
            "Cooling of Hot Food for restaurant 12 on 18/09/2025",
        ]

    def test_suggest_limit(self, capsys, index_dir):
        main(["suggest", "--limit=2", *self._offline(index_dir)])
        assert len(capsys.readouterr().out.strip().splitlines()) == 2

    def test_inspect(self, capsys, index_dir):
        main(["inspect", *self._offline(index_dir)])
        out = capsys.readouterr().out
        assert "Count:    7" in out
        assert "[row1-Fridge_AM]" in out

    def test_inspect_json(self, capsys, index_dir):
        main(["inspect", "--json", "--sample", "2", *self._offline(index_dir)])
        data = json.loads(capsys.readouterr().out)
        assert data["count"] == 7
        assert len(data["sample"]) == 2


class TestConfigCommand:
    def test_offline_profile(self, capsys):
        main(["config", "--profile", "offline"])
        out = capsys.readouterr().out
        assert "embedding_provider: mock" in out
        assert "profile: offline" in out

    def test_unknown_profile(self, capsys):
        with pytest.raises(SystemExit):
            main(["config", "--profile", "nope"])
        assert "Unknown profile" in capsys.readouterr().out

    def test_profile_without_name(self):
        with pytest.raises(SystemExit):
            main(["config", "--profile"])

    def test_yaml(self, capsys, tmp_path):
        path = tmp_path / "safeintel.yaml"
        path.write_text("embedding_provider: mock\nllm_provider: local\ntop_k: 4\n")
        main(["config", f"--config={path}"])
        out = capsys.readouterr().out
        assert "llm_provider: local" in out
        assert "top_k: 4" in out
