"""
SynthStake Scenario Runner

Drives a fresh StakeComponent through a scripted YAML scenario: named
actors with real-asset balances, staking operations, epoch control, status
toggles and expectations. Scenario files are validated against
``schemas/scenario.schema.json`` before they run.

Example scenario:

    name: normal-withdraw
    unstake_delay: 7
    actors:
      alice: "1000"
    steps:
      - {op: stake, actor: alice, amount: "1000"}
      - {op: unstake, actor: alice, shares: all, ticket: t1}
      - {op: withdraw, actor: alice, ticket: t1, expect_error: maturity_not_reached}
      - {op: set_epoch, epoch: 15}
      - {op: withdraw, actor: alice, ticket: t1, expect: "1000"}

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from jsonschema import Draft202012Validator

from synthstake.assets import Bucket, TicketBucket
from synthstake.audit import AuditLogger
from synthstake.epoch import EpochClock
from synthstake.hardening import StakeError, amount_context, require_amount
from synthstake.observability import (
    StakeLayer,
    correlation_id_var,
    generate_correlation_id,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    timed_operation,
)
from synthstake.stake import StakeComponent

SCHEMA_PATH = Path(__file__).parent / "schemas" / "scenario.schema.json"

DEFAULT_REAL_ASSET_ID = "resource_real_asset"


class ScenarioError(StakeError):
    """Scenario file is invalid or a step could not be carried out."""

    error_code = "scenario_error"


# =============================================================================
# LOADING AND VALIDATION
# =============================================================================

@lru_cache(maxsize=1)
def scenario_validator() -> Draft202012Validator:
    """Validator for scenario documents."""
    with open(SCHEMA_PATH, encoding="utf-8") as f:
        schema = json.load(f)
    return Draft202012Validator(schema)


def validate_scenario(data: Any) -> List[str]:
    """
    Validate a scenario document.

    Returns:
        List of validation error messages (empty if valid)
    """
    return [
        f"{error.json_path}: {error.message}"
        for error in scenario_validator().iter_errors(data)
    ]


def load_scenario(path: Union[str, Path]) -> Dict[str, Any]:
    """Load and validate a scenario file."""
    path = Path(path)
    if not path.exists():
        raise ScenarioError(f"Scenario file not found: {path}")
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ScenarioError(f"Invalid YAML in {path}: {e}") from e

    errors = validate_scenario(data)
    if errors:
        raise ScenarioError(f"Invalid scenario {path}: " + "; ".join(errors))
    return data


# =============================================================================
# RUNNER
# =============================================================================

@dataclass
class Wallet:
    """What one actor holds outside the component."""
    real: Decimal
    shares: Decimal = Decimal("0")

    def to_dict(self) -> Dict[str, str]:
        return {"real": str(self.real), "shares": str(self.shares)}


@dataclass
class StepResult:
    index: int
    op: str
    ok: bool
    result: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"index": self.index, "op": self.op, "ok": self.ok}
        if self.result:
            d["result"] = self.result
        if self.error:
            d["error"] = self.error
        return d


class ScenarioRunner:
    """Executes one scenario document against a new component."""

    def __init__(self, scenario: Dict[str, Any]):
        errors = validate_scenario(scenario)
        if errors:
            raise ScenarioError("Invalid scenario: " + "; ".join(errors))

        self.scenario = scenario
        self.clock = EpochClock(scenario.get("start_epoch", 0))
        self.audit = AuditLogger()
        self.component = StakeComponent(
            scenario.get("real_asset_id", DEFAULT_REAL_ASSET_ID),
            self.clock,
            unstake_delay=scenario.get("unstake_delay"),
            audit=self.audit,
        )
        self.wallets: Dict[str, Wallet] = {
            name: Wallet(real=Decimal(str(balance)))
            for name, balance in scenario["actors"].items()
        }
        self.tickets: Dict[str, TicketBucket] = {}
        self._logger = get_logger("scenario_runner", StakeLayer.SCENARIO)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ScenarioRunner":
        return cls(load_scenario(path))

    def run(self) -> Dict[str, Any]:
        """
        Run every step; stops at the first step that does not go as scripted.

        All operations of one run share a single correlation ID, which the
        report carries. An ID already set by the caller is reused.
        """
        token = None
        if not correlation_id_var.get():
            token = set_correlation_id(generate_correlation_id())
        try:
            return self._run_steps()
        finally:
            if token is not None:
                correlation_id_var.reset(token)

    def _run_steps(self) -> Dict[str, Any]:
        results: List[StepResult] = []
        for index, step in enumerate(self.scenario["steps"]):
            result = self._run_step(index, step)
            results.append(result)
            if not result.ok:
                self._logger.warning(
                    f"Scenario step {index} ({step['op']}) failed: {result.error}",
                    scenario=self.scenario["name"],
                )
                break

        passed = all(r.ok for r in results) and len(results) == len(self.scenario["steps"])
        chain_valid, _ = self.audit.verify_chain()
        self._logger.info(
            "Scenario finished",
            scenario=self.scenario["name"],
            passed=passed,
            steps=len(results),
        )
        return {
            "name": self.scenario["name"],
            "passed": passed,
            "correlation_id": get_correlation_id(),
            "steps": [r.to_dict() for r in results],
            "wallets": {name: w.to_dict() for name, w in self.wallets.items()},
            "open_tickets": sorted(self.tickets),
            "state": self.component.get_state(),
            "audit_events": len(self.audit),
            "audit_chain_valid": chain_valid,
        }

    def _run_step(self, index: int, step: Dict[str, Any]) -> StepResult:
        op = step["op"]
        expected_error = step.get("expect_error")
        handler = getattr(self, f"_op_{op}")
        try:
            outcome = timed_operation(self._logger, op)(handler)(step) or {}
        except ScenarioError as e:
            return StepResult(index, op, False, error=str(e))
        except StakeError as e:
            if expected_error and e.error_code == expected_error:
                return StepResult(index, op, True, {"error_code": e.error_code, "message": str(e)})
            return StepResult(index, op, False, error=f"{e.error_code}: {e}")

        if expected_error:
            return StepResult(index, op, False, outcome, f"expected error {expected_error}, operation succeeded")

        if "expect" in step:
            expected = Decimal(str(step["expect"]))
            actual = Decimal(outcome.get("amount", "NaN"))
            if actual != expected:
                return StepResult(index, op, False, outcome, f"expected {expected}, got {actual}")
        return StepResult(index, op, True, outcome)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def _op_stake(self, step: Dict[str, Any]) -> Dict[str, Any]:
        wallet = self._wallet(step["actor"])
        amount = require_amount(step["amount"])
        if amount > wallet.real:
            raise ScenarioError(f"{step['actor']} holds {wallet.real}, cannot stake {amount}")

        shares = self.component.stake(Bucket(self.component.real_asset_id, amount))
        with amount_context():
            wallet.real -= amount
            wallet.shares += shares.amount
        return {"amount": str(shares.amount)}

    def _op_unstake(self, step: Dict[str, Any]) -> Dict[str, Any]:
        wallet = self._wallet(step["actor"])
        amount = self._share_amount(wallet, step["shares"])
        if step["ticket"] in self.tickets:
            raise ScenarioError(f"Ticket name already in use: {step['ticket']}")

        ticket = self.component.unstake(Bucket(self.component.share_resource_id, amount))
        with amount_context():
            wallet.shares -= amount
        self.tickets[step["ticket"]] = ticket
        return {"ticket": step["ticket"], "ticket_id": ticket.ticket_id}

    def _op_withdraw(self, step: Dict[str, Any]) -> Dict[str, Any]:
        wallet = self._wallet(step["actor"])
        ticket = self._ticket(step["ticket"]) if "ticket" in step else None
        shares = None
        if "shares" in step:
            shares = Bucket(self.component.share_resource_id, self._share_amount(wallet, step["shares"]))

        real = self.component.withdraw(shares=shares, ticket=ticket)
        with amount_context():
            wallet.real += real.amount
            if shares is not None:
                wallet.shares -= shares.amount
        if ticket is not None:
            del self.tickets[step["ticket"]]
        return {"amount": str(real.amount)}

    def _op_deposit(self, step: Dict[str, Any]) -> Dict[str, Any]:
        amount = require_amount(step["amount"])
        self.component.deposit(Bucket(self.component.real_asset_id, amount))
        return {"amount": str(amount)}

    def _op_toggle(self, step: Dict[str, Any]) -> Dict[str, Any]:
        contract, pool = self.component.emergency_switch(step.get("contract", False), step.get("pool", False))
        return {"contract": contract.value, "pool": pool.value}

    def _op_update_unstake_period(self, step: Dict[str, Any]) -> Dict[str, Any]:
        self.component.update_unstake_period(step["delay"])
        return {"unstake_delay": self.component.unstake_delay}

    def _op_set_epoch(self, step: Dict[str, Any]) -> Dict[str, Any]:
        return {"epoch": self.clock.set(step["epoch"])}

    def _op_advance(self, step: Dict[str, Any]) -> Dict[str, Any]:
        return {"epoch": self.clock.advance(step.get("epochs", 1))}

    def _op_check_unstake_status(self, step: Dict[str, Any]) -> Dict[str, Any]:
        return self.component.check_unstake_status(self._ticket(step["ticket"])).to_dict()

    def _op_show_redemption_value(self, step: Dict[str, Any]) -> Dict[str, Any]:
        if step["shares"] == "all":
            raise ScenarioError("show_redemption_value needs an explicit share amount")
        return {"amount": str(self.component.show_redemption_value(step["shares"]))}

    def _op_expect_balance(self, step: Dict[str, Any]) -> Dict[str, Any]:
        wallet = self._wallet(step["actor"])
        if "real" in step and wallet.real != Decimal(str(step["real"])):
            raise ScenarioError(f"{step['actor']} real balance is {wallet.real}, expected {step['real']}")
        if "shares" in step:
            if step["shares"] == "all":
                raise ScenarioError("expect_balance needs an explicit share amount")
            if wallet.shares != Decimal(str(step["shares"])):
                raise ScenarioError(f"{step['actor']} share balance is {wallet.shares}, expected {step['shares']}")
        return wallet.to_dict()

    def _op_verify_invariants(self, step: Dict[str, Any]) -> Dict[str, Any]:
        self.component.verify_invariants()
        return {"invariants": "ok"}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _wallet(self, actor: str) -> Wallet:
        if actor not in self.wallets:
            raise ScenarioError(f"Unknown actor: {actor}")
        return self.wallets[actor]

    def _ticket(self, name: str) -> TicketBucket:
        if name not in self.tickets:
            raise ScenarioError(f"Unknown ticket: {name}")
        return self.tickets[name]

    @staticmethod
    def _share_amount(wallet: Wallet, value: Any) -> Decimal:
        if value == "all":
            return wallet.shares
        amount = Decimal(str(value))
        if amount > wallet.shares:
            raise ScenarioError(f"Wallet holds {wallet.shares} shares, cannot present {amount}")
        return amount


def run_scenario(path: Union[str, Path]) -> Dict[str, Any]:
    """Load, validate and run a scenario file."""
    return ScenarioRunner.from_file(path).run()
