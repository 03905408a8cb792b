"""
SynthStake Stake Accounting Core

Orchestrates stake, unstake and withdrawal on top of the pool ledger.

The component owns three balances:

    real_reserve         real asset backing every outstanding share
    pool_share_holdings  shares escrowed for open claim tickets
    claims               registry of open claim tickets

and mints a 1:1 synthetic stand-in for the real asset so the pool ledger
only ever sees a single resource kind.

Withdrawal State Machine:

    contract  pool  input    path
    --------  ----  -------  ---------------------------------------------
    On        On    ticket   normal: maturity enforced, live rate
    Off       On    ticket   early exit: maturity waived, live rate
    Off       On    shares   early exit, self-service: live rate
    Off       Off   ticket   full bypass: pays the locked snapshot value
    Off       Off   shares   full bypass: live quote, shares kept in escrow
    On        Off   any      invalid combination, always refused

Every public mutating operation is transactional: it runs under the
component lock, and any failure restores the state captured before the call
and re-raises. Nothing partial is ever observable.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from synthstake.assets import Bucket, SyntheticIssuer, TicketBucket, Vault, new_resource_id
from synthstake.audit import AuditEventType, AuditLogger
from synthstake.config import get_config
from synthstake.epoch import EpochClock
from synthstake.hardening import (
    InvalidResource,
    InvariantChecker,
    MaturityNotReached,
    ValidationError,
    Validators,
    WrongInputShape,
    amount_context,
    checked_add_epoch,
    require_amount,
)
from synthstake.ledger import PoolLedger
from synthstake.observability import (
    StakeLayer,
    correlation_id_var,
    generate_correlation_id,
    get_logger,
    set_correlation_id,
)
from synthstake.registry import ClaimRegistry, ClaimTicket
from synthstake.status import Status, StatusController

F = TypeVar("F", bound=Callable[..., Any])


# =============================================================================
# TRANSACTIONS
# =============================================================================

def transactional(action: str, event_type: AuditEventType) -> Callable[[F], F]:
    """
    Run a component method as one atomic call.

    The component must provide ``_lock``, ``_snapshot()``, ``_restore()``,
    ``_logger``, ``_audit_failure()`` and ``_audit_success()``. Methods may
    fill ``self._audit_details`` with what the audit event should record.
    """
    def decorator(method: F) -> F:
        @wraps(method)
        def wrapper(self, *args: Any, **kwargs: Any) -> Any:
            with self._lock:
                token = None
                if not correlation_id_var.get():
                    token = set_correlation_id(generate_correlation_id())
                outer = self._audit_details is None
                if outer:
                    self._audit_details = {}
                state = self._snapshot()
                start = time.monotonic()
                try:
                    with amount_context():
                        result = method(self, *args, **kwargs)
                except Exception as e:
                    self._restore(state)
                    duration_ms = (time.monotonic() - start) * 1000
                    if outer:
                        self._audit_details = None
                        error_code = getattr(e, "error_code", "internal_error")
                        self._logger.warning(
                            f"{action} aborted: {e}",
                            operation=action,
                            error_code=error_code,
                            duration_ms=round(duration_ms, 3),
                        )
                        self._audit_failure(action, e)
                    raise
                else:
                    if outer:
                        details, self._audit_details = self._audit_details, None
                        self._logger.operation(action, (time.monotonic() - start) * 1000, **details)
                        self._audit_success(event_type, action, details)
                    return result
                finally:
                    if token is not None:
                        correlation_id_var.reset(token)
        return wrapper  # type: ignore[return-value]
    return decorator


# =============================================================================
# REPORTING TYPES
# =============================================================================

class InputShape(Enum):
    """What a caller presented to ``withdraw``."""
    TICKET = "ticket"
    SHARES = "shares"


@dataclass(frozen=True)
class UnstakeStatus:
    """Time left until a pending unstake becomes withdrawable."""
    maturity_epoch: int
    current_epoch: int
    epochs_left: int
    minutes_left: int
    hours_left: int
    days_left: int

    @classmethod
    def compute(cls, maturity_epoch: int, current_epoch: int, epoch_minutes: int) -> "UnstakeStatus":
        epochs_left = max(maturity_epoch - current_epoch, 0)
        minutes = epochs_left * epoch_minutes
        hours = minutes // 60
        return cls(
            maturity_epoch=maturity_epoch,
            current_epoch=current_epoch,
            epochs_left=epochs_left,
            minutes_left=minutes,
            hours_left=hours,
            days_left=hours // 24,
        )

    @property
    def withdrawable(self) -> bool:
        return self.epochs_left == 0

    @property
    def message(self) -> str:
        if self.withdrawable:
            return "You can now withdraw your stake."
        if self.days_left >= 3:
            approx = f"{self.days_left} days"
        elif self.hours_left >= 1:
            approx = f"{self.hours_left} hours"
        else:
            approx = f"{self.minutes_left} minutes"
        return (
            f"There are {self.epochs_left} epochs left until you can withdraw your stake. "
            f"This is approximately {approx}."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "maturity_epoch": self.maturity_epoch,
            "current_epoch": self.current_epoch,
            "epochs_left": self.epochs_left,
            "minutes_left": self.minutes_left,
            "hours_left": self.hours_left,
            "days_left": self.days_left,
            "withdrawable": self.withdrawable,
            "message": self.message,
        }


@dataclass
class RoleBadges:
    """
    Badge identifiers of the operator roles.

    Informational only: authorization is enforced before a call reaches
    the component.
    """
    owner: str
    super_admin: str
    admin: str

    @classmethod
    def generate(cls) -> "RoleBadges":
        return cls(
            owner=new_resource_id("owner_badge"),
            super_admin=new_resource_id("super_admin_badge"),
            admin=new_resource_id("admin_badge"),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"owner": self.owner, "super_admin": self.super_admin, "admin": self.admin}


# (contract, pool, input) -> handler; (On, Off) is refused before lookup
_WITHDRAW_PATHS: Dict[Tuple[Status, Status, InputShape], str] = {
    (Status.ON, Status.ON, InputShape.TICKET): "_withdraw_normal",
    (Status.OFF, Status.ON, InputShape.TICKET): "_withdraw_early_ticket",
    (Status.OFF, Status.ON, InputShape.SHARES): "_withdraw_early_shares",
    (Status.OFF, Status.OFF, InputShape.TICKET): "_withdraw_bypass_ticket",
    (Status.OFF, Status.OFF, InputShape.SHARES): "_withdraw_bypass_shares",
}


# =============================================================================
# STAKE COMPONENT
# =============================================================================

class StakeComponent:
    """
    Synthetic-asset pool staking component.

    Example:
        clock = EpochClock()
        component = StakeComponent("resource_xrd", clock, unstake_delay=7)
        shares = component.stake(Bucket("resource_xrd", Decimal("1000")))
        ticket = component.unstake(shares)
        clock.set(7)
        real = component.withdraw(ticket=ticket)
    """

    def __init__(
        self,
        real_asset_id: str,
        clock: EpochClock,
        unstake_delay: Optional[int] = None,
        audit: Optional[AuditLogger] = None,
        badges: Optional[RoleBadges] = None,
        component_id: Optional[str] = None,
    ):
        staking = get_config().staking
        if unstake_delay is None:
            unstake_delay = staking.unstake_delay_epochs.get()
        Validators.validate_epoch_delay(unstake_delay).raise_if_invalid()

        self.component_id = component_id or new_resource_id("component")
        self.real_asset_id = real_asset_id
        self.clock = clock
        self.unstake_delay = unstake_delay
        self.epoch_duration_minutes = staking.epoch_duration_minutes.get()
        self.badges = badges or RoleBadges.generate()

        self.real_reserve = Vault(real_asset_id)
        self.issuer = SyntheticIssuer(new_resource_id("synthetic"))
        self.ledger = PoolLedger(
            self.issuer.resource_id,
            decimal_places=staking.decimal_places.get(),
        )
        self.pool_share_holdings = Vault(self.ledger.share_resource_id)
        self.claims: ClaimRegistry[ClaimTicket] = ClaimRegistry(ClaimTicket, new_resource_id("claim_ticket"))
        self.status = StatusController()

        self.total_staked = Decimal("0")
        self.total_deposited = Decimal("0")
        self.total_withdrawn = Decimal("0")
        self.total_bypass_paid = Decimal("0")

        self._audit = audit if audit is not None else AuditLogger()
        self._audit_enabled = get_config().audit.enabled.get()
        self._audit_details: Optional[Dict[str, Any]] = None
        self._lock = threading.RLock()
        self._logger = get_logger("stake_component", StakeLayer.CORE)

        self._logger.info(
            "Stake component instantiated",
            component_id=self.component_id,
            real_asset_id=real_asset_id,
            unstake_delay=unstake_delay,
        )

    @property
    def synthetic_asset_id(self) -> str:
        return self.issuer.resource_id

    @property
    def share_resource_id(self) -> str:
        return self.ledger.share_resource_id

    @property
    def ticket_resource_id(self) -> str:
        return self.claims.resource_id

    @property
    def audit_log(self) -> AuditLogger:
        return self._audit

    # -------------------------------------------------------------------------
    # Staking
    # -------------------------------------------------------------------------

    @transactional("stake", AuditEventType.STAKE)
    def stake(self, bucket: Bucket) -> Bucket:
        """Stake real asset; returns pool shares to the caller."""
        self.status.require_live()
        self._check_real_bucket(bucket)

        self.real_reserve.put(bucket)
        synthetic = self.issuer.mint(bucket.amount)
        shares = self.ledger.contribute(synthetic)
        self.total_staked += bucket.amount

        self._audit_details.update(amount=str(bucket.amount), shares=str(shares.amount))
        return shares

    @transactional("unstake", AuditEventType.UNSTAKE)
    def unstake(self, shares: Bucket) -> TicketBucket:
        """Escrow shares and issue a claim ticket that matures after the delay."""
        self.status.require_live()
        self._check_share_bucket(shares)

        value = self.ledger.get_redemption_value(shares.amount)
        maturity = checked_add_epoch(self.clock.current, self.unstake_delay, self.clock.max_epoch)
        ticket = self.claims.create(
            real_asset_id=self.real_asset_id,
            synthetic_asset_id=self.synthetic_asset_id,
            maturity_epoch=maturity,
            share_amount=shares.amount,
            locked_redemption_value=value,
        )
        self.pool_share_holdings.put(shares)

        self._audit_details.update(
            ticket_id=ticket.ticket_id,
            shares=str(shares.amount),
            locked_redemption_value=str(value),
            maturity_epoch=maturity,
        )
        return ticket

    # -------------------------------------------------------------------------
    # Withdrawal
    # -------------------------------------------------------------------------

    @transactional("withdraw", AuditEventType.WITHDRAW)
    def withdraw(
        self,
        shares: Optional[Bucket] = None,
        ticket: Optional[TicketBucket] = None,
    ) -> Bucket:
        """Withdraw real asset by presenting exactly one of a ticket or shares."""
        self.status.require_valid_combination()
        shape = self._input_shape(shares, ticket)
        contract, pool = self.status.pair

        handler_name = _WITHDRAW_PATHS.get((contract, pool, shape))
        if handler_name is None:
            raise WrongInputShape(
                "input",
                f"Invalid input for withdrawal: {shape.value} not accepted while "
                f"contract is {contract.value} and pool is {pool.value}",
                shape.value,
            )

        handler = getattr(self, handler_name)
        real = handler(ticket if shape is InputShape.TICKET else shares)
        self.total_withdrawn += real.amount

        self._audit_details.update(
            path=handler_name.lstrip("_"),
            contract=contract.value,
            pool=pool.value,
            amount=str(real.amount),
        )
        return real

    @staticmethod
    def _input_shape(shares: Optional[Bucket], ticket: Optional[TicketBucket]) -> InputShape:
        if shares is not None and ticket is None:
            return InputShape.SHARES
        if ticket is not None and shares is None:
            return InputShape.TICKET
        raise WrongInputShape(
            "input",
            "Invalid input for withdrawal: present exactly one of pool units or a claim ticket",
            {"shares": shares is not None, "ticket": ticket is not None},
        )

    def _withdraw_normal(self, ticket: TicketBucket) -> Bucket:
        record = self.claims.validate_single(ticket)
        current = self.clock.current
        if record.maturity_epoch <= 0 or current < record.maturity_epoch:
            raise MaturityNotReached(
                f"Unstake period has not ended yet. Matures at epoch {record.maturity_epoch}, "
                f"current epoch is {current}."
            )
        return self._redeem_escrowed(ticket, record)

    def _withdraw_early_ticket(self, ticket: TicketBucket) -> Bucket:
        record = self.claims.validate_single(ticket)
        return self._redeem_escrowed(ticket, record)

    def _withdraw_early_shares(self, shares: Bucket) -> Bucket:
        self._check_share_bucket(shares)
        return self._redeem_live(shares)

    def _withdraw_bypass_ticket(self, ticket: TicketBucket) -> Bucket:
        record = self.claims.validate_single(ticket)
        real = self.real_reserve.take(record.locked_redemption_value)
        self.claims.burn(ticket)
        self.total_bypass_paid += real.amount
        return real

    def _withdraw_bypass_shares(self, shares: Bucket) -> Bucket:
        self._check_share_bucket(shares)
        value = self.ledger.get_redemption_value(shares.amount)
        real = self.real_reserve.take(value)
        # Surrendered shares stay in escrow, they are not burned
        self.pool_share_holdings.put(shares)
        self.total_bypass_paid += real.amount
        return real

    def _redeem_escrowed(self, ticket: TicketBucket, record: ClaimTicket) -> Bucket:
        shares = self.pool_share_holdings.take(record.share_amount)
        real = self._redeem_live(shares)
        self.claims.burn(ticket)
        return real

    def _redeem_live(self, shares: Bucket) -> Bucket:
        synthetic = self.ledger.redeem(shares)
        real = self.real_reserve.take(synthetic.amount)
        self.issuer.burn(synthetic)
        return real

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def show_redemption_value(self, share_amount: Any) -> Decimal:
        """Real asset the given number of shares would redeem for right now."""
        with self._lock:
            self.status.require_live()
            value = self.ledger.get_redemption_value(require_amount(share_amount, "share_amount", self.ledger.decimal_places))
            self._logger.info("Redemption value", share_amount=str(share_amount), value=str(value))
            return value

    def show_vault_amount(self) -> Decimal:
        with self._lock:
            self.status.require_live()
            amount = self.ledger.get_vault_amount()
            self._logger.info("Pool vault amount", amount=str(amount))
            return amount

    def check_unstake_status(self, ticket: TicketBucket) -> UnstakeStatus:
        """Report the epochs left until a claim ticket matures; the ticket is not consumed."""
        with self._lock:
            self.status.require_live()
            record = self.claims.validate_single(ticket)
            status = UnstakeStatus.compute(record.maturity_epoch, self.clock.current, self.epoch_duration_minutes)
            self._logger.info(status.message, ticket_id=record.ticket_id, epochs_left=status.epochs_left)
            return status

    def get_state(self) -> Dict[str, Any]:
        """Full reporting snapshot of the component; allowed in any status."""
        with self._lock:
            return {
                "component_id": self.component_id,
                "real_asset_id": self.real_asset_id,
                "synthetic_asset_id": self.synthetic_asset_id,
                "share_resource_id": self.share_resource_id,
                "ticket_resource_id": self.ticket_resource_id,
                "current_epoch": self.clock.current,
                "unstake_delay": self.unstake_delay,
                "status": self.status.to_dict(),
                "real_reserve": str(self.real_reserve.amount),
                "pool_share_holdings": str(self.pool_share_holdings.amount),
                "synthetic_supply": str(self.issuer.total_supply),
                "ledger": self.ledger.to_dict(),
                "open_tickets": len(self.claims),
                "badges": self.badges.to_dict(),
                "totals": {
                    "staked": str(self.total_staked),
                    "deposited": str(self.total_deposited),
                    "withdrawn": str(self.total_withdrawn),
                    "bypass_paid": str(self.total_bypass_paid),
                },
            }

    # -------------------------------------------------------------------------
    # Operator operations
    # -------------------------------------------------------------------------

    @transactional("deposit", AuditEventType.DEPOSIT)
    def deposit(self, bucket: Bucket) -> None:
        """Top up the pool backing without minting shares, raising the share rate."""
        self.status.require_live()
        self._check_real_bucket(bucket)

        self.real_reserve.put(bucket)
        synthetic = self.issuer.mint(bucket.amount)
        self.ledger.protected_deposit(synthetic)
        self.total_deposited += bucket.amount

        self._audit_details.update(amount=str(bucket.amount))

    @transactional("update_unstake_period", AuditEventType.CONFIG_CHANGED)
    def update_unstake_period(self, new_delay: int) -> None:
        self.status.require_live()
        Validators.validate_epoch_delay(new_delay).raise_if_invalid()
        if new_delay == self.unstake_delay:
            raise ValidationError(
                "unstake_delay",
                "Unstake period cannot be the same as the current unstake period.",
                new_delay,
            )

        old_delay, self.unstake_delay = self.unstake_delay, new_delay
        self._audit_details.update(old=old_delay, new=new_delay)

    @transactional("emergency_switch", AuditEventType.STATUS_CHANGED)
    def emergency_switch(self, toggle_contract: bool = False, toggle_pool: bool = False) -> Tuple[Status, Status]:
        contract, pool = self.status.toggle(toggle_contract, toggle_pool)
        self._audit_details.update(contract=contract.value, pool=pool.value)
        return contract, pool

    @transactional("update_role_badges", AuditEventType.ROLE_CHANGED)
    def update_role_badges(
        self,
        owner: Optional[str] = None,
        super_admin: Optional[str] = None,
        admin: Optional[str] = None,
    ) -> RoleBadges:
        self.status.require_live()
        for role, new_badge in (("owner", owner), ("super_admin", super_admin), ("admin", admin)):
            if new_badge is None:
                continue
            if new_badge == getattr(self.badges, role):
                raise ValidationError(role, f"New {role} badge must differ from the current one", new_badge)
            setattr(self.badges, role, new_badge)
            self._audit_details[role] = new_badge
        return self.badges

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def verify_invariants(self) -> None:
        """Raise InvariantViolation if the accounting no longer balances."""
        with self._lock, amount_context():
            supply = self.issuer.total_supply
            InvariantChecker.check_non_negative("real reserve", self.real_reserve.amount)
            InvariantChecker.check_equal(
                "synthetic supply", supply, self.ledger.get_vault_amount(), "pool vault"
            )
            InvariantChecker.check_equal(
                "real reserve",
                self.real_reserve.amount + self.total_bypass_paid,
                supply,
                "reserve plus bypass payouts vs synthetic supply",
            )
            InvariantChecker.check_equal(
                "real reserve",
                self.real_reserve.amount,
                self.total_staked + self.total_deposited - self.total_withdrawn,
                "staked plus deposited minus withdrawn",
            )
            escrowed = sum((t.share_amount for t in self.claims.records()), Decimal("0"))
            InvariantChecker.check_balance_sufficient(
                self.pool_share_holdings.amount, escrowed, "escrowed pool units"
            )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check_real_bucket(self, bucket: Bucket) -> None:
        if bucket.resource_id != self.real_asset_id:
            raise InvalidResource("resource_id", "Invalid token.", bucket.resource_id)
        require_amount(bucket.amount, "amount", self.ledger.decimal_places)

    def _check_share_bucket(self, shares: Bucket) -> None:
        if shares.resource_id != self.share_resource_id:
            raise InvalidResource("resource_id", "Invalid pool units.", shares.resource_id)
        require_amount(shares.amount, "shares", self.ledger.decimal_places)

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "reserve": self.real_reserve.snapshot(),
            "escrow": self.pool_share_holdings.snapshot(),
            "issuer": self.issuer.snapshot(),
            "ledger": self.ledger.snapshot(),
            "claims": self.claims.snapshot(),
            "status": self.status.snapshot(),
            "unstake_delay": self.unstake_delay,
            "badges": self.badges.to_dict(),
            "totals": (self.total_staked, self.total_deposited, self.total_withdrawn, self.total_bypass_paid),
        }

    def _restore(self, state: Dict[str, Any]) -> None:
        self.real_reserve.restore(state["reserve"])
        self.pool_share_holdings.restore(state["escrow"])
        self.issuer.restore(state["issuer"])
        self.ledger.restore(state["ledger"])
        self.claims.restore(state["claims"])
        self.status.restore(state["status"])
        self.unstake_delay = state["unstake_delay"]
        self.badges = RoleBadges(**state["badges"])
        (self.total_staked, self.total_deposited,
         self.total_withdrawn, self.total_bypass_paid) = state["totals"]

    def _audit_success(self, event_type: AuditEventType, action: str, details: Dict[str, Any]) -> None:
        if self._audit_enabled:
            self._audit.log(event_type, self.component_id, action, "success", self.clock.current, details)

    def _audit_failure(self, action: str, error: Exception) -> None:
        if self._audit_enabled:
            self._audit.log(
                AuditEventType.OPERATION_FAILED,
                self.component_id,
                action,
                "failure",
                self.clock.current,
                {"error_code": getattr(error, "error_code", "internal_error"), "error": str(error)},
            )
