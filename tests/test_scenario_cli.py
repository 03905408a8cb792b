"""
Scenario runner and CLI tests.

Run with: pytest tests/test_scenario_cli.py -v
"""

import json
from decimal import Decimal

import pytest
import yaml

from synthstake.cli import OutputFormat, SynthStakeCLI, format_output
from synthstake.observability import correlation_id_var, set_correlation_id
from synthstake.scenario import (
    ScenarioError,
    ScenarioRunner,
    load_scenario,
    run_scenario,
    validate_scenario,
)

from conftest import SCENARIO_DIR

SCENARIO_FILES = sorted(SCENARIO_DIR.glob("*.yaml"))


@pytest.fixture(autouse=True)
def isolated_defaults(tmp_path, monkeypatch):
    """Keep default config files of the host out of CLI runs."""
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return workdir


def minimal(steps, **extra):
    doc = {"name": "t", "unstake_delay": 7, "actors": {"alice": "100"}, "steps": steps}
    doc.update(extra)
    return doc


# =============================================================================
# SCENARIO FILES
# =============================================================================

class TestBundledScenarios:

    def test_scenarios_present(self):
        assert {p.stem for p in SCENARIO_FILES} >= {"normal_withdraw", "early_exit", "full_bypass"}

    @pytest.mark.parametrize("path", SCENARIO_FILES, ids=lambda p: p.stem)
    def test_scenario_passes(self, path):
        report = run_scenario(path)
        assert report["passed"], report["steps"]
        assert report["audit_chain_valid"]
        assert report["open_tickets"] == []

    def test_full_bypass_end_state(self):
        report = run_scenario(SCENARIO_DIR / "full_bypass.yaml")
        state = report["state"]
        assert state["status"] == {"contract": "Off", "pool": "Off"}
        assert Decimal(state["real_reserve"]) == Decimal("500")
        assert Decimal(state["totals"]["bypass_paid"]) == Decimal("2500")
        assert Decimal(report["wallets"]["bob"]["real"]) == Decimal("1500")
        assert Decimal(report["wallets"]["bob"]["shares"]) == 0


# =============================================================================
# VALIDATION
# =============================================================================

class TestValidation:

    def test_valid_document(self):
        assert validate_scenario(minimal([{"op": "stake", "actor": "alice", "amount": "10"}])) == []

    def test_missing_required_fields(self):
        errors = validate_scenario({"name": "t", "steps": []})
        assert any("actors" in e for e in errors)

    def test_unknown_op(self):
        errors = validate_scenario(minimal([{"op": "teleport"}]))
        assert errors and errors[0].startswith("$.steps[0]")

    def test_stake_requires_amount(self):
        assert validate_scenario(minimal([{"op": "stake", "actor": "alice"}]))

    def test_negative_amount(self):
        assert validate_scenario(minimal([{"op": "deposit", "amount": "-5"}]))

    def test_load_invalid_file(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"name": "t", "steps": []}))
        with pytest.raises(ScenarioError):
            load_scenario(path)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ScenarioError):
            load_scenario(tmp_path / "absent.yaml")

    def test_runner_rejects_invalid_document(self):
        with pytest.raises(ScenarioError):
            ScenarioRunner({"name": "t"})


# =============================================================================
# RUNNER
# =============================================================================

class TestRunner:

    def test_stops_at_first_failure(self):
        report = ScenarioRunner(minimal([
            {"op": "stake", "actor": "alice", "amount": "10", "expect": "11"},
            {"op": "verify_invariants"},
        ])).run()
        assert not report["passed"]
        assert len(report["steps"]) == 1
        assert report["steps"][0]["error"].startswith("expected 11")

    def test_unexpected_success_fails(self):
        report = ScenarioRunner(minimal([
            {"op": "stake", "actor": "alice", "amount": "10", "expect_error": "contract_inactive"},
        ])).run()
        assert not report["passed"]

    def test_wrong_error_code_fails(self):
        report = ScenarioRunner(minimal([
            {"op": "toggle", "pool": True},
            {"op": "stake", "actor": "alice", "amount": "10", "expect_error": "contract_inactive"},
        ])).run()
        assert not report["passed"]
        assert report["steps"][1]["error"].startswith("invalid_status_combination")

    def test_overdrawn_wallet(self):
        report = ScenarioRunner(minimal([{"op": "stake", "actor": "alice", "amount": "101"}])).run()
        assert not report["passed"]
        assert "cannot stake" in report["steps"][0]["error"]

    def test_unknown_ticket_name(self):
        report = ScenarioRunner(minimal([{"op": "withdraw", "actor": "alice", "ticket": "nope"}])).run()
        assert not report["passed"]

    def test_status_and_epochs(self):
        report = ScenarioRunner(minimal([
            {"op": "stake", "actor": "alice", "amount": "100"},
            {"op": "unstake", "actor": "alice", "shares": "40", "ticket": "t"},
            {"op": "advance", "epochs": 3},
            {"op": "check_unstake_status", "ticket": "t"},
            {"op": "update_unstake_period", "delay": 2},
            {"op": "expect_balance", "actor": "alice", "real": "0", "shares": "60"},
        ])).run()
        assert report["passed"], report["steps"]
        status = report["steps"][3]["result"]
        assert status["epochs_left"] == 4
        assert status["minutes_left"] == 20
        assert report["state"]["unstake_delay"] == 2
        assert report["open_tickets"] == ["t"]

    def test_run_carries_one_correlation_id(self):
        report = ScenarioRunner(minimal([{"op": "stake", "actor": "alice", "amount": "10"}])).run()
        assert report["correlation_id"].startswith("corr-")

    def test_caller_correlation_id_reused(self):
        token = set_correlation_id("corr-caller")
        try:
            report = ScenarioRunner(minimal([{"op": "stake", "actor": "alice", "amount": "10"}])).run()
        finally:
            correlation_id_var.reset(token)
        assert report["correlation_id"] == "corr-caller"

    def test_large_amounts_tracked_exactly(self):
        report = ScenarioRunner(minimal(
            [
                {"op": "stake", "actor": "alice", "amount": "12345678901.123456789012345678"},
                {"op": "unstake", "actor": "alice", "shares": "0.000000000000000001", "ticket": "t"},
                {"op": "expect_balance", "actor": "alice",
                 "real": "98765432109.876543210987654322", "shares": "12345678901.123456789012345677"},
                {"op": "verify_invariants"},
            ],
            actors={"alice": "111111111011"},
        )).run()
        assert report["passed"], report["steps"]


# =============================================================================
# CLI
# =============================================================================

class TestCLI:

    def test_scenario_run(self, capsys):
        code = SynthStakeCLI().run(["scenario", "run", str(SCENARIO_DIR / "normal_withdraw.yaml")])
        assert code == 0
        report = json.loads(capsys.readouterr().out)
        assert report["passed"] is True
        assert report["name"] == "normal-withdraw"

    def test_scenario_run_summary_table(self, capsys):
        code = SynthStakeCLI().run([
            "--format", "table", "scenario", "run", "--summary",
            str(SCENARIO_DIR / "early_exit.yaml"),
        ])
        assert code == 0
        out = capsys.readouterr().out
        assert out.splitlines()[0].startswith("index | op")

    def test_failing_scenario_exit_code(self, tmp_path, capsys):
        path = tmp_path / "failing.yaml"
        path.write_text(yaml.safe_dump(minimal([
            {"op": "stake", "actor": "alice", "amount": "10", "expect": "1"},
        ])))
        assert SynthStakeCLI().run(["scenario", "run", str(path)]) == 2

    def test_invalid_scenario_run(self, tmp_path, capsys):
        path = tmp_path / "invalid.yaml"
        path.write_text("name: t\nsteps: []\n")
        assert SynthStakeCLI().run(["scenario", "run", str(path)]) == 1
        assert "Invalid scenario" in capsys.readouterr().err

    def test_scenario_validate(self, tmp_path, capsys):
        good = SCENARIO_DIR / "full_bypass.yaml"
        assert SynthStakeCLI().run(["scenario", "validate", str(good)]) == 0
        assert json.loads(capsys.readouterr().out)["valid"] is True

        bad = tmp_path / "bad.yaml"
        bad.write_text("name: t\nsteps: []\n")
        assert SynthStakeCLI().run(["scenario", "validate", str(bad)]) == 2

    def test_scenario_validate_unreadable(self, tmp_path, capsys):
        assert SynthStakeCLI().run(["scenario", "validate", str(tmp_path / "nope.yaml")]) == 1

    def test_config_get(self, capsys):
        assert SynthStakeCLI().run(["config", "get", "staking.unstake_delay_epochs"]) == 0
        assert json.loads(capsys.readouterr().out)["value"] == 7

    def test_config_file_flag(self, tmp_path, capsys):
        path = tmp_path / "cfg.yaml"
        path.write_text("staking:\n  unstake_delay_epochs: 12\n")
        code = SynthStakeCLI().run(["--config", str(path), "config", "get", "staking.unstake_delay_epochs"])
        assert code == 0
        assert json.loads(capsys.readouterr().out)["value"] == 12

    def test_project_config_file_loaded(self, isolated_defaults, capsys):
        (isolated_defaults / "synthstake.yaml").write_text("staking:\n  unstake_delay_epochs: 4\n")
        assert SynthStakeCLI().run(["config", "get", "staking.unstake_delay_epochs"]) == 0
        assert json.loads(capsys.readouterr().out)["value"] == 4

    def test_config_file_precedence(self, tmp_path, isolated_defaults, capsys):
        (isolated_defaults / "synthstake.yaml").write_text("staking:\n  unstake_delay_epochs: 4\n")
        user_dir = tmp_path / "home" / ".synthstake"
        user_dir.mkdir(parents=True)
        (user_dir / "config.yaml").write_text("staking:\n  unstake_delay_epochs: 9\n")
        assert SynthStakeCLI().run(["config", "get", "staking.unstake_delay_epochs"]) == 0
        assert json.loads(capsys.readouterr().out)["value"] == 9

        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("staking:\n  unstake_delay_epochs: 12\n")
        code = SynthStakeCLI().run(["--config", str(explicit), "config", "get", "staking.unstake_delay_epochs"])
        assert code == 0
        assert json.loads(capsys.readouterr().out)["value"] == 12

    def test_broken_project_config_reported(self, isolated_defaults, capsys):
        (isolated_defaults / "synthstake.yaml").write_text("staking: [unclosed\n")
        assert SynthStakeCLI().run(["config", "show"]) == 1
        assert "Invalid YAML" in capsys.readouterr().err

    def test_bad_config_path(self, tmp_path, capsys):
        code = SynthStakeCLI().run(["--config", str(tmp_path / "missing.yaml"), "config", "show"])
        assert code == 1

    def test_yaml_output(self, capsys):
        assert SynthStakeCLI().run(["--format", "yaml", "config", "show"]) == 0
        data = yaml.safe_load(capsys.readouterr().out)
        assert data["staking"]["epoch_duration_minutes"] == 5

    def test_quiet_suppresses_errors(self, capsys):
        assert SynthStakeCLI().run(["--quiet", "config", "get", "nothing.here"]) == 1
        assert capsys.readouterr().err == ""

    def test_no_command_prints_help(self, capsys):
        assert SynthStakeCLI().run([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_format_output_text(self):
        assert format_output({"a": 1}, OutputFormat.TEXT) == "{'a': 1}"
