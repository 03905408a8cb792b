"""
SynthStake Status Controller

Two independent On/Off flags gate the staking component:

    contract   the staking component itself
    pool       the pool ledger behind it

Reachable operating states:

    (On,  On )  normal operation
    (Off, On )  contract frozen, pool-priced early exits allowed
    (Off, Off)  everything frozen, exits paid from the reserve

(On, Off) is never a legal operating state. Toggling into it is allowed so
an operator can step through it, but every guarded operation refuses to run
there.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Tuple

from synthstake.hardening import ContractInactive, InvalidStatusCombination, PoolInactive
from synthstake.observability import StakeLayer, get_logger


class Status(Enum):
    """Two-state flag."""
    ON = "On"
    OFF = "Off"

    def flipped(self) -> "Status":
        return Status.OFF if self is Status.ON else Status.ON


INVALID_COMBINATION: Tuple[Status, Status] = (Status.ON, Status.OFF)


class StatusController:
    """Holds the contract and pool flags and enforces status guards."""

    def __init__(self, contract: Status = Status.ON, pool: Status = Status.ON):
        self.contract = contract
        self.pool = pool
        self._logger = get_logger("status", StakeLayer.STATUS)

    @property
    def pair(self) -> Tuple[Status, Status]:
        return (self.contract, self.pool)

    def toggle(self, toggle_contract: bool = False, toggle_pool: bool = False) -> Tuple[Status, Status]:
        """Flip either or both flags; nothing else changes."""
        if toggle_contract:
            self.contract = self.contract.flipped()
            self._logger.info(f"Contract status has been switched to {self.contract.value}.")
        if toggle_pool:
            self.pool = self.pool.flipped()
            self._logger.info(f"Pool status has been switched to {self.pool.value}.")
        if self.pair == INVALID_COMBINATION:
            self._logger.warning(
                "Status is now contract On / pool Off; all operations are refused until toggled",
                contract=self.contract.value,
                pool=self.pool.value,
            )
        return self.pair

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def require_valid_combination(self) -> None:
        if self.pair == INVALID_COMBINATION:
            raise InvalidStatusCombination("Invalid state combination for contract and pool")

    def require_contract_on(self) -> None:
        if self.contract is not Status.ON:
            raise ContractInactive("Contract is not active.")

    def require_contract_off(self) -> None:
        if self.contract is not Status.OFF:
            raise ContractInactive("Contract is active, cannot withdraw in 'On' mode.")

    def require_pool_on(self) -> None:
        if self.pool is not Status.ON:
            raise PoolInactive("Pool is not active.")

    def require_live(self) -> None:
        """Both flags On."""
        self.require_valid_combination()
        self.require_contract_on()
        self.require_pool_on()

    def snapshot(self) -> Tuple[Status, Status]:
        return self.pair

    def restore(self, pair: Tuple[Status, Status]) -> None:
        self.contract, self.pool = pair

    def to_dict(self) -> Dict[str, Any]:
        return {"contract": self.contract.value, "pool": self.pool.value}
