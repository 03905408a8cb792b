"""
Stake accounting core tests: stake, unstake, deposit, reporting and
operator operations.

Run with: pytest tests/test_stake_component.py -v

Copyright (c) 2026 Momentum. All rights reserved.
"""

from decimal import Decimal

import pytest

from synthstake.assets import Bucket, TicketBucket
from synthstake.audit import AuditEventType
from synthstake.epoch import EpochClock
from synthstake.hardening import (
    MAX_EPOCH,
    ArithmeticOverflow,
    ContractInactive,
    InvalidAmount,
    InvalidResource,
    InvalidStatusCombination,
    InvariantViolation,
    PoolLedgerError,
    TicketNotFound,
    ValidationError,
    WrongTicketCount,
)
from synthstake.stake import StakeComponent, UnstakeStatus
from synthstake.status import Status

from conftest import REAL


def shares_of(component, amount) -> Bucket:
    return Bucket(component.share_resource_id, Decimal(str(amount)))


# =============================================================================
# STAKE
# =============================================================================

class TestStake:

    def test_stake_mints_one_to_one(self, component, real):
        shares = component.stake(real(1000))
        assert shares.resource_id == component.share_resource_id
        assert shares.amount == Decimal("1000")
        assert component.real_reserve.amount == Decimal("1000")
        assert component.issuer.total_supply == Decimal("1000")
        assert component.ledger.get_vault_amount() == Decimal("1000")
        assert component.pool_share_holdings.amount == 0

    def test_second_staker_at_same_rate(self, component, real):
        component.stake(real(1000))
        assert component.stake(real(500)).amount == Decimal("500")

    def test_stake_after_deposit_gets_fewer_shares(self, component, real):
        component.stake(real(1000))
        component.deposit(real(1000))
        assert component.stake(real(1000)).amount == Decimal("500")

    def test_wrong_asset(self, component):
        with pytest.raises(InvalidResource):
            component.stake(Bucket("resource_other", Decimal("10")))

    def test_zero_amount(self, component, real):
        with pytest.raises(InvalidAmount):
            component.stake(real(0))

    def test_contract_off(self, component, real):
        component.emergency_switch(toggle_contract=True)
        with pytest.raises(ContractInactive):
            component.stake(real(10))

    def test_invalid_combination(self, component, real):
        component.emergency_switch(toggle_pool=True)
        with pytest.raises(InvalidStatusCombination):
            component.stake(real(10))

    def test_dust_below_smallest_unit_rejected(self, real):
        with pytest.raises(InvalidAmount):
            real("1E-30")

    def test_amount_finer_than_configured_places(self, clock, real):
        from synthstake.config import get_config_manager
        get_config_manager().set("staking.decimal_places", 6)
        component = StakeComponent(REAL, clock)

        with pytest.raises(InvalidAmount):
            component.stake(real("1.0000001"))
        assert component.real_reserve.amount == 0
        assert component.issuer.total_supply == 0

        assert component.stake(real("1.000001")).amount == Decimal("1.000001")
        with pytest.raises(InvalidAmount):
            component.show_redemption_value("0.0000001")
        component.verify_invariants()

    def test_smallest_unit_round_trips(self, component, clock, real):
        ticket = component.unstake(component.stake(real("1E-18")))
        clock.set(7)
        assert component.withdraw(ticket=ticket).amount == Decimal("1E-18")
        assert component.real_reserve.amount == 0
        component.verify_invariants()


# =============================================================================
# UNSTAKE
# =============================================================================

class TestUnstake:

    def test_unstake_creates_ticket_and_escrows(self, component, clock, real):
        shares = component.stake(real(1000))
        clock.set(3)
        ticket = component.unstake(shares)

        assert ticket.resource_id == component.ticket_resource_id
        record = component.claims.read(ticket.ticket_id)
        assert record.maturity_epoch == 10
        assert record.share_amount == Decimal("1000")
        assert record.locked_redemption_value == Decimal("1000")
        assert record.real_asset_id == REAL
        assert record.synthetic_asset_id == component.synthetic_asset_id
        assert component.pool_share_holdings.amount == Decimal("1000")

    def test_snapshot_reflects_rate_at_unstake(self, component, real):
        shares = component.stake(real(1000))
        component.deposit(real(500))
        part, _ = shares.split(Decimal("400"))
        ticket = component.unstake(part)
        assert component.claims.read(ticket.ticket_id).locked_redemption_value == Decimal("600")

    def test_wrong_share_resource(self, component, real):
        component.stake(real(10))
        with pytest.raises(InvalidResource):
            component.unstake(Bucket("resource_fake_units", Decimal("10")))

    def test_zero_shares(self, component, real):
        component.stake(real(10))
        with pytest.raises(InvalidAmount):
            component.unstake(shares_of(component, 0))

    def test_epoch_overflow_leaves_no_trace(self, real):
        clock = EpochClock(MAX_EPOCH - 3)
        component = StakeComponent(REAL, clock, unstake_delay=7)
        shares = component.stake(real(100))
        with pytest.raises(ArithmeticOverflow):
            component.unstake(shares)
        assert len(component.claims) == 0
        assert component.pool_share_holdings.amount == 0

    def test_contract_off(self, component, real):
        shares = component.stake(real(100))
        component.emergency_switch(toggle_contract=True)
        with pytest.raises(ContractInactive):
            component.unstake(shares)


# =============================================================================
# REPORTING
# =============================================================================

class TestReporting:

    def test_show_redemption_value_and_vault(self, component, real):
        component.stake(real(1000))
        component.deposit(real(250))
        assert component.show_redemption_value("100") == Decimal("125")
        assert component.show_vault_amount() == Decimal("1250")

    def test_show_redemption_value_rejects_zero(self, component, real):
        component.stake(real(10))
        with pytest.raises(InvalidAmount):
            component.show_redemption_value(0)

    def test_show_redemption_value_on_empty_pool(self, component):
        with pytest.raises(PoolLedgerError):
            component.show_redemption_value(1)

    def test_reads_require_live_status(self, component, real):
        component.stake(real(10))
        component.emergency_switch(toggle_contract=True)
        with pytest.raises(ContractInactive):
            component.show_vault_amount()
        with pytest.raises(ContractInactive):
            component.show_redemption_value(1)

    def test_get_state_in_any_status(self, component, real):
        component.stake(real(10))
        component.emergency_switch(toggle_pool=True)
        state = component.get_state()
        assert state["status"] == {"contract": "On", "pool": "Off"}
        assert state["real_reserve"] == "10"
        assert state["ledger"]["share_supply"] == "10"
        assert state["open_tickets"] == 0
        assert state["totals"]["staked"] == "10"
        assert set(state["badges"]) == {"owner", "super_admin", "admin"}


class TestUnstakeStatus:

    def test_minutes(self, component, real):
        ticket = component.unstake(component.stake(real(10)))
        status = component.check_unstake_status(ticket)
        assert status.epochs_left == 7
        assert status.minutes_left == 35
        assert not status.withdrawable
        assert status.message.endswith("approximately 35 minutes.")

    def test_hours_and_days(self):
        assert UnstakeStatus.compute(20, 0, 5).message.endswith("approximately 1 hours.")
        days = UnstakeStatus.compute(2000, 0, 5)
        assert days.days_left == 6
        assert days.message.endswith("approximately 6 days.")

    def test_under_three_days_reports_hours(self):
        status = UnstakeStatus.compute(800, 0, 5)
        assert status.days_left == 2
        assert status.message.endswith("approximately 66 hours.")

    def test_matured(self, component, clock, real):
        ticket = component.unstake(component.stake(real(10)))
        clock.set(20)
        status = component.check_unstake_status(ticket)
        assert status.epochs_left == 0
        assert status.withdrawable
        assert status.to_dict()["message"] == "You can now withdraw your stake."

    def test_ticket_not_consumed(self, component, real):
        ticket = component.unstake(component.stake(real(10)))
        component.check_unstake_status(ticket)
        assert ticket.ticket_id in component.claims

    def test_invalid_tickets(self, component, real):
        a = component.unstake(component.stake(real(10)))
        b = component.unstake(component.stake(real(10)))
        with pytest.raises(WrongTicketCount):
            component.check_unstake_status(a.merge(b))
        with pytest.raises(InvalidResource):
            component.check_unstake_status(TicketBucket.of("resource_other", [a.ticket_id]))


# =============================================================================
# OPERATOR OPERATIONS
# =============================================================================

class TestOperator:

    def test_deposit_raises_share_value(self, component, real):
        component.stake(real(1000))
        component.deposit(real(100))
        assert component.ledger.share_supply == Decimal("1000")
        assert component.real_reserve.amount == Decimal("1100")
        assert component.issuer.total_supply == Decimal("1100")
        assert component.total_deposited == Decimal("100")

    def test_deposit_guards(self, component, real):
        with pytest.raises(InvalidResource):
            component.deposit(Bucket("resource_other", Decimal("1")))
        with pytest.raises(InvalidAmount):
            component.deposit(real(0))
        component.emergency_switch(toggle_contract=True)
        with pytest.raises(ContractInactive):
            component.deposit(real(1))

    def test_update_unstake_period(self, component, real):
        component.update_unstake_period(14)
        assert component.unstake_delay == 14
        ticket = component.unstake(component.stake(real(1)))
        assert component.claims.read(ticket.ticket_id).maturity_epoch == 14

    @pytest.mark.parametrize("bad", [7, 0, -3, True])
    def test_update_unstake_period_rejects(self, component, bad):
        with pytest.raises(ValidationError):
            component.update_unstake_period(bad)
        assert component.unstake_delay == 7

    def test_update_unstake_period_needs_live_status(self, component):
        component.emergency_switch(toggle_contract=True)
        with pytest.raises(ContractInactive):
            component.update_unstake_period(3)

    def test_update_role_badges(self, component):
        old_admin = component.badges.admin
        badges = component.update_role_badges(owner="resource_new_owner")
        assert badges.owner == "resource_new_owner"
        assert badges.admin == old_admin

    def test_update_role_badges_same_value_rolls_back(self, component):
        old_owner = component.badges.owner
        with pytest.raises(ValidationError):
            component.update_role_badges(owner="resource_new_owner", admin=component.badges.admin)
        assert component.badges.owner == old_owner

    def test_emergency_switch_returns_pair(self, component):
        assert component.emergency_switch(True, True) == (Status.OFF, Status.OFF)
        assert component.emergency_switch(True, True) == (Status.ON, Status.ON)

    def test_default_delay_from_config(self, clock):
        from synthstake.config import get_config_manager
        get_config_manager().set("staking.unstake_delay_epochs", 3)
        assert StakeComponent(REAL, clock).unstake_delay == 3


# =============================================================================
# INVARIANTS AND AUDIT
# =============================================================================

class TestInvariantsAndAudit:

    def test_verify_invariants_on_fresh_activity(self, component, real):
        shares = component.stake(real(1000))
        component.deposit(real(10))
        component.unstake(shares)
        component.verify_invariants()

    def test_verify_invariants_detects_drift(self, component, real):
        component.stake(real(1000))
        component.issuer.restore(Decimal("999"))
        with pytest.raises(InvariantViolation):
            component.verify_invariants()

    def test_verify_invariants_detects_missing_escrow(self, component, real):
        component.unstake(component.stake(real(1000)))
        component.pool_share_holdings.restore(Decimal("1"))
        with pytest.raises(InvariantViolation):
            component.verify_invariants()

    def test_audit_records_success_and_failure(self, component, real):
        component.stake(real(10))
        with pytest.raises(InvalidAmount):
            component.stake(real(0))

        events = component.audit_log.get_events()
        assert [e.event_type for e in events] == [AuditEventType.STAKE, AuditEventType.OPERATION_FAILED]
        assert events[0].details["amount"] == "10"
        assert events[1].outcome == "failure"
        assert events[1].details["error_code"] == "invalid_amount"
        assert component.audit_log.verify_chain() == (True, None)

    def test_audit_disabled_by_config(self, clock, real):
        from synthstake.config import get_config_manager
        get_config_manager().set("audit.enabled", False)
        component = StakeComponent(REAL, clock, unstake_delay=7)
        component.stake(real(10))
        assert len(component.audit_log) == 0

    def test_burned_ticket_cannot_be_reported(self, component, clock, real):
        ticket = component.unstake(component.stake(real(10)))
        clock.set(7)
        component.withdraw(ticket=ticket)
        with pytest.raises(TicketNotFound):
            component.check_unstake_status(ticket)


class TestPackageExports:

    def test_lazy_exports(self):
        import synthstake
        assert synthstake.StakeComponent is StakeComponent
        assert synthstake.Status is Status
        with pytest.raises(AttributeError):
            synthstake.NoSuchThing
