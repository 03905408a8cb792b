"""
SynthStake Pool Ledger

A single-resource share pool. Contributors hand in the underlying resource
and receive pool shares; redeeming shares returns the underlying at the
pool's current ratio:

    shares_minted   = amount * share_supply / vault_amount
    amount_redeemed = shares * vault_amount / share_supply

The first contribution into a pool with no outstanding shares mints shares
1:1. A protected deposit grows the vault without minting shares, which
raises the value of every outstanding share.

All divisions truncate to the configured number of fractional digits, so
rounding dust always stays in the pool.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from synthstake.assets import Bucket, new_resource_id
from synthstake.hardening import (
    DEFAULT_DECIMAL_PLACES,
    InvalidAmount,
    InvalidResource,
    InvariantChecker,
    PoolLedgerError,
    Validators,
    amount_context,
    mul_div_down,
)
from synthstake.observability import StakeLayer, get_logger


class PoolLedger:
    """
    Converts between underlying amounts and pool shares.

    Owns the authoritative underlying reserve of the pool (the vault) and
    the share supply.
    """

    def __init__(
        self,
        underlying_resource_id: str,
        share_resource_id: Optional[str] = None,
        decimal_places: int = DEFAULT_DECIMAL_PLACES,
    ):
        self.underlying_resource_id = underlying_resource_id
        self.share_resource_id = share_resource_id or new_resource_id("pool_unit")
        self.decimal_places = decimal_places
        self._vault_amount = Decimal("0")
        self._share_supply = Decimal("0")
        self._logger = get_logger("pool_ledger", StakeLayer.LEDGER)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def share_supply(self) -> Decimal:
        return self._share_supply

    def get_vault_amount(self) -> Decimal:
        return self._vault_amount

    def get_redemption_value(self, share_amount: Decimal) -> Decimal:
        """Underlying amount ``share_amount`` shares redeem for right now."""
        result = Validators.validate_amount(share_amount, "share_amount", decimal_places=self.decimal_places)
        result.raise_if_invalid()
        share_amount = result.sanitized_value

        if share_amount > self._share_supply:
            raise PoolLedgerError(
                f"Redemption of {share_amount} shares exceeds share supply {self._share_supply}"
            )
        return mul_div_down(share_amount, self._vault_amount, self._share_supply, self.decimal_places)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def contribute(self, bucket: Bucket) -> Bucket:
        """Add underlying to the pool; returns freshly minted shares."""
        self._check_underlying(bucket)
        amount = bucket.amount

        if self._share_supply == 0:
            shares = amount
        elif self._vault_amount == 0:
            raise PoolLedgerError("Pool has outstanding shares but an empty vault")
        else:
            shares = mul_div_down(amount, self._share_supply, self._vault_amount, self.decimal_places)
            if shares == 0:
                raise InvalidAmount("amount", "Contribution too small to mint any shares", amount)

        with amount_context():
            self._vault_amount += amount
            self._share_supply += shares
        self._logger.debug(
            "Contribution accepted",
            amount=str(amount),
            shares=str(shares),
            vault=str(self._vault_amount),
            supply=str(self._share_supply),
        )
        return Bucket(self.share_resource_id, shares)

    def redeem(self, shares: Bucket) -> Bucket:
        """Burn shares; returns the underlying at the current ratio."""
        if shares.resource_id != self.share_resource_id:
            raise InvalidResource("resource_id", "Invalid pool units.", shares.resource_id)
        amount = self.get_redemption_value(shares.amount)

        InvariantChecker.check_balance_sufficient(self._vault_amount, amount, "pool vault")
        with amount_context():
            self._share_supply -= shares.amount
            self._vault_amount -= amount
        self._logger.debug(
            "Shares redeemed",
            shares=str(shares.amount),
            amount=str(amount),
            vault=str(self._vault_amount),
            supply=str(self._share_supply),
        )
        return Bucket(self.underlying_resource_id, amount)

    def protected_deposit(self, bucket: Bucket) -> None:
        """Grow the vault without minting shares."""
        self._check_underlying(bucket)
        with amount_context():
            self._vault_amount += bucket.amount
        self._logger.debug("Protected deposit", amount=str(bucket.amount), vault=str(self._vault_amount))

    def _check_underlying(self, bucket: Bucket) -> None:
        if bucket.resource_id != self.underlying_resource_id:
            raise InvalidResource(
                "resource_id",
                f"Pool accepts {self.underlying_resource_id}, got {bucket.resource_id}",
                bucket.resource_id,
            )
        result = Validators.validate_amount(bucket.amount, "amount", decimal_places=self.decimal_places)
        result.raise_if_invalid()

    # -------------------------------------------------------------------------
    # Snapshot support
    # -------------------------------------------------------------------------

    def snapshot(self) -> Tuple[Decimal, Decimal]:
        return (self._vault_amount, self._share_supply)

    def restore(self, state: Tuple[Decimal, Decimal]) -> None:
        self._vault_amount, self._share_supply = state

    def to_dict(self) -> Dict[str, Any]:
        return {
            "underlying_resource_id": self.underlying_resource_id,
            "share_resource_id": self.share_resource_id,
            "vault_amount": str(self._vault_amount),
            "share_supply": str(self._share_supply),
        }
