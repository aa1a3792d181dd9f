"""
Tests for CLI exit codes and output, with the runner patched.
"""

import json

import pytest

import cli
import config
from models.errors import VCSError
from models.schemas import ChangeScope, LayerReport, Run, RunReport, RunStatus


@pytest.fixture(autouse=True)
def no_database(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "DATABASE_URL", "")
    monkeypatch.setattr(config, "RUN_LOGS_DIR", tmp_path / "run_logs")


def patch_runner(monkeypatch, status=RunStatus.SUCCESS, error=None):
    seen = {}

    async def fake_run_inprocess(repo_path, scope, store, *, model=None, policy=None, write_adr=False, events=None):
        seen.update(repo_path=repo_path, scope=scope, model=model, policy=policy, write_adr=write_adr)
        if error:
            raise error
        run = Run(id="run-20260101-000000-abcdef", scope=ChangeScope.parse(scope), status=status,
                  total_layers=1, guides_updated=1)
        return RunReport(run=run, layers=[LayerReport(index=0, guides=["svc/agents.md"], updated=1)])

    monkeypatch.setattr(cli, "run_inprocess", fake_run_inprocess)
    return seen


class TestUpdate:

    def test_success_exit_code(self, monkeypatch, capsys, tmp_path):
        seen = patch_runner(monkeypatch)

        code = cli.main(["update", "head", "--repo", str(tmp_path), "--model", "m", "--policy", "any_failure", "--adr"])

        assert code == 0
        assert seen == {"repo_path": str(tmp_path), "scope": "head", "model": "m",
                        "policy": "any_failure", "write_adr": True}
        out = capsys.readouterr().out
        assert "Layer 0: 1 updated" in out
        assert "run-20260101-000000-abcdef: success" in out

    def test_default_scope_is_staged(self, monkeypatch, tmp_path):
        seen = patch_runner(monkeypatch)
        assert cli.main(["update", "--repo", str(tmp_path)]) == 0
        assert seen["scope"] == "staged"

    def test_failed_run_exit_code(self, monkeypatch, tmp_path):
        patch_runner(monkeypatch, status=RunStatus.FAILED)
        assert cli.main(["update", "--repo", str(tmp_path)]) == 1

    def test_fatal_error_exit_code(self, monkeypatch, capsys, tmp_path):
        patch_runner(monkeypatch, error=VCSError("diff", "not a git repository"))

        assert cli.main(["update", "--repo", str(tmp_path)]) == 2
        assert "not a git repository" in capsys.readouterr().err

    def test_unexpected_error_exit_code(self, monkeypatch, capsys, tmp_path):
        patch_runner(monkeypatch, error=OSError("disk full"))

        assert cli.main(["update", "--repo", str(tmp_path)]) == 2
        assert "disk full" in capsys.readouterr().err

    def test_invalid_scope_rejected(self):
        with pytest.raises(SystemExit):
            cli.main(["update", "yesterday"])


class TestTree:

    def test_prints_tree_and_coverage(self, make_repo, capsys):
        repo = make_repo("agents.md", "svc/agents.md")

        assert cli.main(["tree", "--repo", str(repo)]) == 0

        out = capsys.readouterr().out
        assert "├── agents.md" in out
        assert "  ├── svc/agents.md" in out
        assert "2 guide(s): 2 active, 0 draft" in out

    def test_json(self, make_repo, capsys):
        repo = make_repo("svc/agents.md")

        assert cli.main(["tree", "--repo", str(repo), "--json"]) == 0

        assert json.loads(capsys.readouterr().out)["coverage"]["total"] == 1

    def test_missing_repository(self, tmp_path):
        assert cli.main(["tree", "--repo", str(tmp_path / "missing")]) == 2


class TestRuns:

    def test_reads_run_logs(self, capsys):
        config.RUN_LOGS_DIR.mkdir(parents=True)
        for i, status in enumerate(["success", "failed"]):
            record = {"run": {"id": f"run-{i}", "status": status, "scope": "staged", "guides_updated": i,
                              "guides_unchanged": 0, "guides_failed": 0, "started_at": f"2026-01-0{i + 1}"}}
            (config.RUN_LOGS_DIR / f"run-{i}.json").write_text(json.dumps(record))

        assert cli.main(["runs", "--status", "failed"]) == 0

        out = capsys.readouterr().out
        assert "run-1" in out
        assert "run-0" not in out

    def test_no_runs(self, capsys):
        assert cli.main(["runs"]) == 0
        assert "No runs recorded" in capsys.readouterr().out
