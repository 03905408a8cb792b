"""
SynthStake Asset Primitives

Buckets, vaults and the synthetic asset issuer.

A Bucket is a transient, immutable quantity of one fungible resource that is
handed between callers and components. A Vault is an owned balance of one
resource. The SyntheticIssuer mints and burns the internal 1:1 stand-in for
the real asset so the pool ledger only ever sees a single resource kind.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, Tuple

from synthstake.hardening import (
    InvalidAmount,
    InvalidResource,
    InvariantChecker,
    Validators,
    amount_context,
)
from synthstake.observability import StakeLayer, get_logger


def new_resource_id(prefix: str) -> str:
    """Generate an opaque resource identifier."""
    return f"resource_{prefix}_{secrets.token_hex(8)}"


# =============================================================================
# BUCKETS
# =============================================================================

@dataclass(frozen=True)
class Bucket:
    """An immutable quantity of one fungible resource."""
    resource_id: str
    amount: Decimal

    def __post_init__(self):
        result = Validators.validate_amount(self.amount, "amount", allow_zero=True)
        result.raise_if_invalid()
        object.__setattr__(self, "amount", result.sanitized_value)

    def split(self, amount: Decimal) -> Tuple["Bucket", "Bucket"]:
        """Split into (taken, remainder)."""
        amount = Decimal(amount)
        if amount < 0 or amount > self.amount:
            raise InvalidAmount("amount", f"Cannot take {amount} from bucket of {self.amount}", amount)
        with amount_context():
            rest = self.amount - amount
        return Bucket(self.resource_id, amount), Bucket(self.resource_id, rest)

    def merge(self, other: "Bucket") -> "Bucket":
        if other.resource_id != self.resource_id:
            raise InvalidResource("resource_id", "Cannot merge buckets of different resources", other.resource_id)
        with amount_context():
            return Bucket(self.resource_id, self.amount + other.amount)

    def to_dict(self) -> Dict[str, Any]:
        return {"resource_id": self.resource_id, "amount": str(self.amount)}


@dataclass(frozen=True)
class TicketBucket:
    """
    A holding of claim tickets issued by one registry.

    Tickets are bearer credentials: whoever presents the bucket may redeem
    the tickets in it.
    """
    resource_id: str
    ticket_ids: FrozenSet[str]

    def __post_init__(self):
        object.__setattr__(self, "ticket_ids", frozenset(self.ticket_ids))

    @classmethod
    def of(cls, resource_id: str, ticket_ids: Iterable[str]) -> "TicketBucket":
        return cls(resource_id, frozenset(ticket_ids))

    @property
    def amount(self) -> int:
        return len(self.ticket_ids)

    @property
    def ticket_id(self) -> str:
        """The single ticket id held; only valid when amount == 1."""
        if len(self.ticket_ids) != 1:
            raise InvalidAmount("tickets", f"Bucket holds {len(self.ticket_ids)} tickets, not 1", len(self.ticket_ids))
        return next(iter(self.ticket_ids))

    def merge(self, other: "TicketBucket") -> "TicketBucket":
        if other.resource_id != self.resource_id:
            raise InvalidResource("resource_id", "Cannot merge tickets of different registries", other.resource_id)
        return TicketBucket(self.resource_id, self.ticket_ids | other.ticket_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {"resource_id": self.resource_id, "ticket_ids": sorted(self.ticket_ids)}


# =============================================================================
# VAULT
# =============================================================================

class Vault:
    """Owned balance of a single fungible resource."""

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        self._amount = Decimal("0")

    @property
    def amount(self) -> Decimal:
        return self._amount

    def put(self, bucket: Bucket) -> None:
        if bucket.resource_id != self.resource_id:
            raise InvalidResource(
                "resource_id",
                f"Vault holds {self.resource_id}, got {bucket.resource_id}",
                bucket.resource_id,
            )
        with amount_context():
            self._amount += bucket.amount

    def take(self, amount: Decimal) -> Bucket:
        amount = Decimal(amount)
        if amount < 0:
            raise InvalidAmount("amount", "Cannot take a negative amount", amount)
        InvariantChecker.check_balance_sufficient(self._amount, amount, f"vault {self.resource_id}")
        with amount_context():
            self._amount -= amount
        return Bucket(self.resource_id, amount)

    def snapshot(self) -> Decimal:
        return self._amount

    def restore(self, amount: Decimal) -> None:
        self._amount = amount

    def __repr__(self) -> str:
        return f"Vault({self.resource_id!r}, amount={self._amount})"


# =============================================================================
# SYNTHETIC ASSET ISSUER
# =============================================================================

class SyntheticIssuer:
    """
    Mints and burns the synthetic stand-in for the real asset.

    Supply is traceable 1:1 to the real asset currently routed through the
    pool ledger: every mint is matched by a real deposit into the reserve
    and every burn by a real payout.
    """

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        self._total_supply = Decimal("0")
        self._logger = get_logger("issuer", StakeLayer.ISSUER)

    @property
    def total_supply(self) -> Decimal:
        return self._total_supply

    def mint(self, amount: Decimal) -> Bucket:
        result = Validators.validate_amount(amount, "mint_amount")
        result.raise_if_invalid()
        amount = result.sanitized_value

        with amount_context():
            self._total_supply += amount
        self._logger.debug("Minted synthetic tokens", amount=str(amount), supply=str(self._total_supply))
        return Bucket(self.resource_id, amount)

    def burn(self, bucket: Bucket) -> None:
        if bucket.resource_id != self.resource_id:
            raise InvalidResource(
                "resource_id",
                f"Issuer burns {self.resource_id}, got {bucket.resource_id}",
                bucket.resource_id,
            )
        InvariantChecker.check_balance_sufficient(self._total_supply, bucket.amount, "synthetic supply")
        with amount_context():
            self._total_supply -= bucket.amount
        self._logger.debug("Burned synthetic tokens", amount=str(bucket.amount), supply=str(self._total_supply))

    def snapshot(self) -> Decimal:
        return self._total_supply

    def restore(self, supply: Decimal) -> None:
        self._total_supply = supply
