"""
SynthStake Direct Staking

Single-asset staking without a pool ledger. Each position is a stake receipt
whose staked and pending amounts are updated in place:

    stake           new receipt, amount held in the stake vault
    add_stake       grow an existing receipt
    unstake         move part of the stake to pending; starts the delay
    withdraw_stake  after the delay, pay out pending; burn the receipt when
                    nothing is left staked
    emergency_*     contract Off: pay staked plus pending at once

Only the contract status applies here.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from synthstake.assets import Bucket, TicketBucket, Vault, new_resource_id
from synthstake.audit import AuditEventType, AuditLogger
from synthstake.config import get_config
from synthstake.epoch import EpochClock
from synthstake.hardening import (
    InvalidAmount,
    InvalidResource,
    MaturityNotReached,
    ValidationError,
    Validators,
    checked_add_epoch,
    require_amount,
)
from synthstake.observability import StakeLayer, get_logger
from synthstake.registry import STAKE_RECEIPT_MUTABLE_FIELDS, ClaimRegistry, StakeReceipt
from synthstake.stake import UnstakeStatus, transactional
from synthstake.status import Status, StatusController


class DirectStake:
    """Direct staking with mutable receipts."""

    def __init__(
        self,
        staking_asset_id: str,
        clock: EpochClock,
        unstake_delay: Optional[int] = None,
        audit: Optional[AuditLogger] = None,
        component_id: Optional[str] = None,
    ):
        staking = get_config().staking
        if unstake_delay is None:
            unstake_delay = staking.unstake_delay_epochs.get()
        Validators.validate_epoch_delay(unstake_delay).raise_if_invalid()

        self.component_id = component_id or new_resource_id("direct_component")
        self.staking_asset_id = staking_asset_id
        self.clock = clock
        self.unstake_delay = unstake_delay
        self.epoch_duration_minutes = staking.epoch_duration_minutes.get()

        self.stake_vault = Vault(staking_asset_id)
        self.receipts: ClaimRegistry[StakeReceipt] = ClaimRegistry(
            StakeReceipt,
            new_resource_id("stake_receipt"),
            mutable_fields=STAKE_RECEIPT_MUTABLE_FIELDS,
        )
        self.status = StatusController()

        self._audit = audit if audit is not None else AuditLogger()
        self._audit_enabled = get_config().audit.enabled.get()
        self._audit_details: Optional[Dict[str, Any]] = None
        self._lock = threading.RLock()
        self._logger = get_logger("direct_stake", StakeLayer.DIRECT)

    @property
    def receipt_resource_id(self) -> str:
        return self.receipts.resource_id

    @property
    def audit_log(self) -> AuditLogger:
        return self._audit

    @transactional("stake", AuditEventType.STAKE)
    def stake(self, bucket: Bucket) -> TicketBucket:
        self.status.require_contract_on()
        self._check_stake_bucket(bucket)

        self.stake_vault.put(bucket)
        receipt = self.receipts.create(staking_asset_id=self.staking_asset_id, amount_staked=bucket.amount)
        self._audit_details.update(receipt=receipt.ticket_id, amount=str(bucket.amount))
        return receipt

    @transactional("add_stake", AuditEventType.STAKE)
    def add_stake(self, receipt: TicketBucket, bucket: Bucket) -> TicketBucket:
        self.status.require_contract_on()
        self._check_stake_bucket(bucket)
        record = self.receipts.validate_single(receipt)

        self.stake_vault.put(bucket)
        self.receipts.mutate(record.ticket_id, "amount_staked", record.amount_staked + bucket.amount)
        self._audit_details.update(receipt=record.ticket_id, amount=str(bucket.amount))
        return receipt

    @transactional("unstake", AuditEventType.UNSTAKE)
    def unstake(self, amount: Any, receipt: TicketBucket) -> TicketBucket:
        """Start unstaking ``amount``; only one unstake may be pending per receipt."""
        self.status.require_contract_on()
        amount = require_amount(amount)
        record = self.receipts.validate_single(receipt)

        if amount > record.amount_staked:
            raise InvalidAmount("amount", "Invalid amount", amount)
        if record.unstake_period_end != 0 or record.pending_amount != 0:
            raise ValidationError("receipt", "An unstake is already pending for this receipt", record.ticket_id)

        period_end = checked_add_epoch(self.clock.current, self.unstake_delay, self.clock.max_epoch)
        self.receipts.mutate(record.ticket_id, "unstake_period_end", period_end)
        self.receipts.mutate(record.ticket_id, "pending_amount", amount)
        self.receipts.mutate(record.ticket_id, "amount_staked", record.amount_staked - amount)

        self._audit_details.update(receipt=record.ticket_id, amount=str(amount), unstake_period_end=period_end)
        return receipt

    @transactional("withdraw_stake", AuditEventType.WITHDRAW)
    def withdraw_stake(self, receipt: TicketBucket) -> Tuple[Optional[TicketBucket], Bucket]:
        """
        Pay out the pending amount once the delay has passed.

        Returns the receipt (None if it was burned) and the payout.
        """
        self.status.require_contract_on()
        record = self.receipts.validate_single(receipt)
        current = self.clock.current
        if record.unstake_period_end <= 0 or current < record.unstake_period_end:
            raise MaturityNotReached(
                f"Unstake period has not ended yet. Ends at epoch {record.unstake_period_end}, "
                f"current epoch is {current}."
            )

        payout = self.stake_vault.take(record.pending_amount)
        self._audit_details.update(receipt=record.ticket_id, amount=str(payout.amount))

        if record.amount_staked == 0:
            self.receipts.burn(receipt)
            self._audit_details["burned"] = True
            return None, payout

        self.receipts.mutate(record.ticket_id, "unstake_period_end", 0)
        self.receipts.mutate(record.ticket_id, "pending_amount", Decimal("0"))
        return receipt, payout

    @transactional("emergency_withdraw", AuditEventType.WITHDRAW)
    def emergency_withdraw(self, receipt: TicketBucket) -> Bucket:
        """Contract Off only: pay staked plus pending immediately and burn the receipt."""
        self.status.require_contract_off()
        record = self.receipts.validate_single(receipt)

        payout = self.stake_vault.take(record.amount_staked + record.pending_amount)
        self.receipts.burn(receipt)
        self._audit_details.update(receipt=record.ticket_id, amount=str(payout.amount))
        return payout

    def check_unstake_status(self, receipt: TicketBucket) -> UnstakeStatus:
        with self._lock:
            self.status.require_contract_on()
            record = self.receipts.validate_single(receipt)
            status = UnstakeStatus.compute(
                record.unstake_period_end, self.clock.current, self.epoch_duration_minutes
            )
            self._logger.info(status.message, receipt=record.ticket_id, epochs_left=status.epochs_left)
            return status

    @transactional("update_unstake_period", AuditEventType.CONFIG_CHANGED)
    def update_unstake_period(self, new_delay: int) -> None:
        self.status.require_contract_on()
        Validators.validate_epoch_delay(new_delay).raise_if_invalid()
        if new_delay == self.unstake_delay:
            raise ValidationError("unstake_delay", "Unstake period is already set to the new value", new_delay)
        old_delay, self.unstake_delay = self.unstake_delay, new_delay
        self._audit_details.update(old=old_delay, new=new_delay)

    @transactional("emergency_switch", AuditEventType.STATUS_CHANGED)
    def emergency_switch(self) -> Status:
        contract, _ = self.status.toggle(toggle_contract=True)
        self._audit_details.update(contract=contract.value)
        return contract

    def get_state(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "component_id": self.component_id,
                "staking_asset_id": self.staking_asset_id,
                "receipt_resource_id": self.receipt_resource_id,
                "current_epoch": self.clock.current,
                "unstake_delay": self.unstake_delay,
                "contract_status": self.status.contract.value,
                "stake_vault": str(self.stake_vault.amount),
                "open_receipts": len(self.receipts),
            }

    def _check_stake_bucket(self, bucket: Bucket) -> None:
        if bucket.resource_id != self.staking_asset_id:
            raise InvalidResource("resource_id", "Invalid staking token", bucket.resource_id)
        require_amount(bucket.amount)

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "vault": self.stake_vault.snapshot(),
            "receipts": self.receipts.snapshot(),
            "status": self.status.snapshot(),
            "unstake_delay": self.unstake_delay,
        }

    def _restore(self, state: Dict[str, Any]) -> None:
        self.stake_vault.restore(state["vault"])
        self.receipts.restore(state["receipts"])
        self.status.restore(state["status"])
        self.unstake_delay = state["unstake_delay"]

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
