from __future__ import annotations

import json
from pathlib import Path

import pytest

from comms.cli import main
from comms.config import AppConfig, ConfigError, load_config
from comms.io.load_raw import extract_jobs, extract_records, load_snapshot


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_resolves_env(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_PROJECT", "proj-42")
    cfg = load_config(
        _write(
            tmp_path / "config.yml",
            "store:\n  project_id: ${TEST_PROJECT}\n  candidates_table_id: cands\n  page_size: 500\nview:\n  page_size: 25\n",
        )
    )
    assert cfg.project_id == "proj-42"
    assert cfg.candidates_table_id == "cands"
    assert cfg.page_size == 100
    assert cfg.default_page_size == 25
    assert cfg.base_url == "https://api.wexa.ai"
    cfg.validate_store()


def test_config_errors(tmp_path, monkeypatch):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yml")
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path / "list.yml", "- a\n- b\n"))
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path / "bad.yml", "store: [unclosed\n"))
    with pytest.raises(ConfigError):
        AppConfig(raw={"store": {"project_id": "p"}}).validate_store()

    monkeypatch.delenv("STORE_API_KEY", raising=False)
    with pytest.raises(ConfigError):
        AppConfig(raw={}).api_key()


def test_snapshot_formats(tmp_path):
    doc = _write(
        tmp_path / "snap.json",
        json.dumps({"records": [{"candidate_id": "a"}, "junk"], "jobs": {"j1": {"title": "T", "company_name": "C"}}}),
    )
    data = load_snapshot(doc)
    assert extract_records(data) == [{"candidate_id": "a"}]
    assert extract_jobs(data) == {"j1": {"title": "T", "company_name": "C"}}

    bare = _write(tmp_path / "bare.json", json.dumps([{"candidate_id": "b"}]))
    assert extract_records(load_snapshot(bare)) == [{"candidate_id": "b"}]
    assert extract_jobs(load_snapshot(bare)) == {}

    lines = _write(tmp_path / "snap.jsonl", '{"candidate_id": "c"}\n\n{"candidate_id": "d"}\n')
    assert [r["candidate_id"] for r in extract_records(load_snapshot(lines))] == ["c", "d"]

    with pytest.raises(ValueError):
        extract_records({"items": []})
    with pytest.raises(FileNotFoundError):
        load_snapshot(tmp_path / "nope.json")


def _snapshot(tmp_path: Path) -> Path:
    records = [
        {
            "candidate_id": "c1",
            "candidate_name": "Ada",
            "overall_messages": "Candidate - Mail : thanks",
            "crafted_linkedin_message": "Hi Ada",
        },
        {"candidate_id": "c2", "candidate_name": "Grace"},
    ]
    return _write(tmp_path / "snap.json", json.dumps({"records": records}))


def test_cli_conversations_from_snapshot(tmp_path):
    out = tmp_path / "view.json"
    code = main(
        [
            "conversations",
            "--config",
            str(tmp_path / "absent.yml"),
            "--input",
            str(_snapshot(tmp_path)),
            "--output",
            str(out),
        ]
    )
    assert code == 0
    view = json.loads(out.read_text(encoding="utf-8"))
    assert [c["candidate_id"] for c in view["conversations"]] == ["c1", "c2"]
    assert view["stats"] == {"total": 2, "with_messages": 1, "without_messages": 1}
    assert view["pending_prompts"]["c1"][0]["channel"] == "linkedin"


def test_cli_prompts_from_snapshot(tmp_path):
    assert main(["prompts", "--config", str(tmp_path / "absent.yml"), "--input", str(_snapshot(tmp_path))]) == 0


def test_cli_moderate_requires_config(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(
            [
                "moderate",
                "--config",
                str(tmp_path / "absent.yml"),
                "--candidate-id",
                "c1",
                "--channel",
                "linkedin",
                "--decision",
                "approve",
            ]
        )
    assert exc.value.code == 2


def test_cli_live_store_needs_api_key(tmp_path, monkeypatch):
    monkeypatch.delenv("STORE_API_KEY", raising=False)
    cfg = _write(tmp_path / "config.yml", "store:\n  project_id: p\n  candidates_table_id: t\n")
    assert main(["conversations", "--config", str(cfg)]) == 2


def test_source_tree_uses_namespace_packages():
    import comms

    src = Path(__file__).resolve().parents[1] / "src" / "comms"
    assert getattr(comms, "__file__", None) is None
    assert list(src.rglob("__init__.py")) == []
