"""
SynthStake — Pooled Staking with Time-Locked Claims

Depositors lock a real asset and receive shares of a pool; unstaking
escrows the shares behind a claim ticket that matures after a delay.
Two independent status flags (contract, pool) select between the normal
withdrawal path and the emergency exits.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                          STAKING COMPONENTS                              │
    │                                                                          │
    │  CORE                                                                    │
    │    stake.py       Stake accounting core and withdrawal state machine     │
    │    direct.py      Single-asset staking with mutable receipts             │
    │                                                                          │
    │  COLLABORATORS                                                           │
    │    ledger.py      Single-resource share pool                             │
    │    assets.py      Buckets, vaults, synthetic issuer                      │
    │    registry.py    Claim ticket arena                                     │
    │    status.py      Contract and pool status flags                         │
    │    epoch.py       Monotonic epoch clock                                  │
    │                                                                          │
    │  AMBIENT                                                                 │
    │    hardening.py   Errors, validators, invariant checks                   │
    │    config.py      YAML and environment configuration                     │
    │    observability.py  Structured logging                                  │
    │    audit.py       Hash-chained audit trail                               │
    │    scenario.py    YAML scenario runner                                   │
    │    cli.py         Command-line interface                                 │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Copyright (c) 2026 Momentum. All rights reserved.
"""

__version__ = "0.3.0"


# Lazy imports to avoid circular dependencies
def __getattr__(name):
    """Lazy import SynthStake modules on first access."""

    if name in ("StakeComponent", "UnstakeStatus", "RoleBadges", "InputShape", "transactional"):
        from synthstake import stake
        return getattr(stake, name)

    if name in ("DirectStake",):
        from synthstake import direct
        return getattr(direct, name)

    if name in ("PoolLedger",):
        from synthstake import ledger
        return getattr(ledger, name)

    if name in ("Bucket", "TicketBucket", "Vault", "SyntheticIssuer", "new_resource_id"):
        from synthstake import assets
        return getattr(assets, name)

    if name in ("ClaimRegistry", "ClaimTicket", "StakeReceipt"):
        from synthstake import registry
        return getattr(registry, name)

    if name in ("Status", "StatusController"):
        from synthstake import status
        return getattr(status, name)

    if name in ("EpochClock",):
        from synthstake import epoch
        return getattr(epoch, name)

    if name in ("StakeError", "ValidationError", "InvariantViolation", "ContractInactive",
                "PoolInactive", "InvalidStatusCombination", "InvalidAmount", "InvalidResource",
                "WrongTicketCount", "WrongInputShape", "TicketNotFound", "ImmutableFieldError",
                "MaturityNotReached", "ArithmeticOverflow", "InsufficientBalance",
                "PoolLedgerError", "Validators", "InvariantChecker"):
        from synthstake import hardening
        return getattr(hardening, name)

    if name in ("ConfigError", "ConfigManager", "get_config", "get_config_manager"):
        from synthstake import config
        return getattr(config, name)

    if name in ("AuditEventType", "AuditEvent", "AuditLogger"):
        from synthstake import audit
        return getattr(audit, name)

    if name in ("ScenarioRunner", "ScenarioError", "run_scenario", "validate_scenario"):
        from synthstake import scenario
        return getattr(scenario, name)

    raise AttributeError(f"module 'synthstake' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Core
    "StakeComponent",
    "UnstakeStatus",
    "RoleBadges",
    "InputShape",
    "DirectStake",
    # Collaborators
    "PoolLedger",
    "Bucket",
    "TicketBucket",
    "Vault",
    "SyntheticIssuer",
    "ClaimRegistry",
    "ClaimTicket",
    "StakeReceipt",
    "Status",
    "StatusController",
    "EpochClock",
    # Errors
    "StakeError",
    "ValidationError",
    "InvariantViolation",
    "ContractInactive",
    "PoolInactive",
    "InvalidStatusCombination",
    "InvalidAmount",
    "InvalidResource",
    "WrongTicketCount",
    "WrongInputShape",
    "TicketNotFound",
    "MaturityNotReached",
    "ArithmeticOverflow",
    "InsufficientBalance",
    # Ambient
    "ConfigManager",
    "get_config",
    "AuditLogger",
    "ScenarioRunner",
    "run_scenario",
]
