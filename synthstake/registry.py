"""
SynthStake Claim Ticket Registry

An arena of independently addressable claim records keyed by an opaque
ticket id. Burning a ticket removes it from the arena, so a burned ticket is
simply absent rather than marked dead.

Two record types are issued:

    ClaimTicket   pending unstake in the synthetic pool component;
                  every field is fixed at creation
    StakeReceipt  position in the direct staking component; amount and
                  unstake fields are mutable

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import secrets
from dataclasses import asdict, dataclass, fields, replace
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Generic, Iterator, List, Optional, Type, TypeVar

from synthstake.assets import TicketBucket, new_resource_id
from synthstake.hardening import (
    ImmutableFieldError,
    InvalidResource,
    TicketNotFound,
    ValidationError,
    WrongTicketCount,
)
from synthstake.observability import StakeLayer, get_logger


# =============================================================================
# RECORD TYPES
# =============================================================================

@dataclass(frozen=True)
class ClaimTicket:
    """A pending unstake: escrowed shares plus the value they had at unstake."""
    ticket_id: str
    real_asset_id: str
    synthetic_asset_id: str
    maturity_epoch: int
    share_amount: Decimal
    locked_redemption_value: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "real_asset_id": self.real_asset_id,
            "synthetic_asset_id": self.synthetic_asset_id,
            "maturity_epoch": self.maturity_epoch,
            "share_amount": str(self.share_amount),
            "locked_redemption_value": str(self.locked_redemption_value),
        }


@dataclass(frozen=True)
class StakeReceipt:
    """A direct staking position."""
    ticket_id: str
    staking_asset_id: str
    amount_staked: Decimal
    # 0 while no unstake is pending
    unstake_period_end: int = 0
    pending_amount: Decimal = Decimal("0")

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["amount_staked"] = str(self.amount_staked)
        d["pending_amount"] = str(self.pending_amount)
        return d


STAKE_RECEIPT_MUTABLE_FIELDS: FrozenSet[str] = frozenset(
    {"amount_staked", "unstake_period_end", "pending_amount"}
)

R = TypeVar("R")


# =============================================================================
# REGISTRY
# =============================================================================

class ClaimRegistry(Generic[R]):
    """
    Keyed store of claim records.

    Operations on different tickets never interfere: each record is stored
    and replaced independently.
    """

    def __init__(
        self,
        record_type: Type[R],
        resource_id: Optional[str] = None,
        mutable_fields: FrozenSet[str] = frozenset(),
    ):
        declared = {f.name for f in fields(record_type)}
        unknown = set(mutable_fields) - declared
        if unknown:
            raise ValidationError("mutable_fields", f"Unknown fields: {sorted(unknown)}", unknown)
        if "ticket_id" in mutable_fields:
            raise ValidationError("mutable_fields", "ticket_id is never mutable", "ticket_id")

        self.record_type = record_type
        self.resource_id = resource_id or new_resource_id("claim")
        self.mutable_fields = frozenset(mutable_fields)
        self._records: Dict[str, R] = {}
        self._logger = get_logger("claim_registry", StakeLayer.REGISTRY)

    def create(self, **data: Any) -> TicketBucket:
        """Issue a new record; returns a bucket holding its single ticket."""
        ticket_id = "{" + secrets.token_hex(16) + "}"
        while ticket_id in self._records:
            ticket_id = "{" + secrets.token_hex(16) + "}"
        record = self.record_type(ticket_id=ticket_id, **data)
        self._records[ticket_id] = record
        self._logger.debug("Ticket created", ticket_id=ticket_id)
        return TicketBucket.of(self.resource_id, [ticket_id])

    def read(self, ticket_id: str) -> R:
        record = self._records.get(ticket_id)
        if record is None:
            raise TicketNotFound(f"Unknown or burned ticket: {ticket_id}")
        return record

    def mutate(self, ticket_id: str, field_name: str, value: Any) -> R:
        """Replace one mutable field of a live record."""
        if field_name not in self.mutable_fields:
            raise ImmutableFieldError(f"Field '{field_name}' of {self.record_type.__name__} is immutable")
        record = replace(self.read(ticket_id), **{field_name: value})
        self._records[ticket_id] = record
        self._logger.debug("Ticket updated", ticket_id=ticket_id, field=field_name, value=str(value))
        return record

    def burn(self, tickets: TicketBucket) -> None:
        """Permanently remove every ticket held in the bucket."""
        self.check_resource(tickets)
        for ticket_id in tickets.ticket_ids:
            self.read(ticket_id)
        for ticket_id in tickets.ticket_ids:
            del self._records[ticket_id]
            self._logger.debug("Ticket burned", ticket_id=ticket_id)

    def check_resource(self, tickets: TicketBucket) -> None:
        if tickets.resource_id != self.resource_id:
            raise InvalidResource("tickets", "Invalid NFT claim receipt.", tickets.resource_id)

    def validate_single(self, tickets: TicketBucket) -> R:
        """Check a presented bucket holds exactly one live ticket of this registry."""
        self.check_resource(tickets)
        if tickets.amount != 1:
            raise WrongTicketCount("tickets", "Only 1 NFT claim receipt is allowed.", tickets.amount)
        return self.read(tickets.ticket_id)

    def records(self) -> List[R]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, ticket_id: object) -> bool:
        return ticket_id in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._records))

    def snapshot(self) -> Dict[str, R]:
        # Records are frozen, a shallow copy is a full snapshot
        return dict(self._records)

    def restore(self, records: Dict[str, R]) -> None:
        self._records = dict(records)
