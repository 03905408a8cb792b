"""
Pool ledger tests: share minting, redemption at the live ratio, protected
deposits and rounding.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from decimal import Decimal

import pytest

from synthstake.assets import Bucket
from synthstake.hardening import InvalidAmount, InvalidResource, PoolLedgerError
from synthstake.ledger import PoolLedger

UNDERLYING = "resource_synthetic_test"


@pytest.fixture
def ledger():
    return PoolLedger(UNDERLYING)


def underlying(amount) -> Bucket:
    return Bucket(UNDERLYING, Decimal(str(amount)))


class TestContribute:
    """Tests for minting shares."""

    def test_first_contribution_mints_one_to_one(self, ledger):
        shares = ledger.contribute(underlying(1000))
        assert shares.resource_id == ledger.share_resource_id
        assert shares.amount == Decimal("1000")
        assert ledger.share_supply == Decimal("1000")
        assert ledger.get_vault_amount() == Decimal("1000")

    def test_contribution_at_raised_rate_mints_fewer_shares(self, ledger):
        ledger.contribute(underlying(1000))
        ledger.protected_deposit(underlying(1000))
        shares = ledger.contribute(underlying(200))
        assert shares.amount == Decimal("100")
        assert ledger.share_supply == Decimal("1100")
        assert ledger.get_vault_amount() == Decimal("2200")

    def test_shares_round_down(self, ledger):
        ledger.contribute(underlying(1000))
        ledger.protected_deposit(underlying(1))
        shares = ledger.contribute(underlying(1))
        assert shares.amount == Decimal("0.999000999000999000")

    def test_large_amounts_keep_full_precision(self, ledger):
        ledger.contribute(underlying("123456789012345.123456789012345678"))
        shares = ledger.contribute(underlying("1.000000000000000001"))
        assert shares.amount == Decimal("1.000000000000000001")

    def test_amount_finer_than_ledger_places_rejected(self):
        coarse = PoolLedger(UNDERLYING, decimal_places=6)
        with pytest.raises(InvalidAmount):
            coarse.contribute(underlying("0.0000001"))
        assert coarse.share_supply == 0
        assert coarse.contribute(underlying("1.000001")).amount == Decimal("1.000001")

    def test_wrong_resource_rejected(self, ledger):
        with pytest.raises(InvalidResource):
            ledger.contribute(Bucket("resource_other", Decimal("5")))

    def test_zero_contribution_rejected(self, ledger):
        with pytest.raises(InvalidAmount):
            ledger.contribute(underlying(0))

    def test_shares_without_backing_rejected(self, ledger):
        ledger.restore((Decimal("0"), Decimal("10")))
        with pytest.raises(PoolLedgerError):
            ledger.contribute(underlying(5))


class TestRedeem:
    """Tests for redeeming shares."""

    def test_redeem_at_current_ratio(self, ledger):
        shares = ledger.contribute(underlying(1000))
        ledger.protected_deposit(underlying(500))
        half, _ = shares.split(Decimal("500"))
        out = ledger.redeem(half)
        assert out.resource_id == UNDERLYING
        assert out.amount == Decimal("750")
        assert ledger.share_supply == Decimal("500")
        assert ledger.get_vault_amount() == Decimal("750")

    def test_redeem_everything_empties_pool(self, ledger):
        shares = ledger.contribute(underlying(1000))
        out = ledger.redeem(shares)
        assert out.amount == Decimal("1000")
        assert ledger.share_supply == 0
        assert ledger.get_vault_amount() == 0

    def test_redeem_wrong_resource(self, ledger):
        ledger.contribute(underlying(1000))
        with pytest.raises(InvalidResource) as exc:
            ledger.redeem(Bucket("resource_fake_units", Decimal("10")))
        assert "Invalid pool units." in str(exc.value)

    def test_redeem_more_than_supply(self, ledger):
        ledger.contribute(underlying(100))
        with pytest.raises(PoolLedgerError):
            ledger.redeem(Bucket(ledger.share_resource_id, Decimal("101")))


class TestReads:
    """Tests for read-only quotes."""

    def test_redemption_value_is_pure(self, ledger):
        ledger.contribute(underlying(1000))
        ledger.protected_deposit(underlying(1000))
        before = ledger.snapshot()
        assert ledger.get_redemption_value(Decimal("250")) == Decimal("500")
        assert ledger.snapshot() == before

    def test_redemption_value_rejects_zero(self, ledger):
        ledger.contribute(underlying(10))
        with pytest.raises(InvalidAmount):
            ledger.get_redemption_value(Decimal("0"))

    def test_redemption_value_on_empty_pool(self, ledger):
        with pytest.raises(PoolLedgerError):
            ledger.get_redemption_value(Decimal("1"))

    def test_protected_deposit_mints_nothing(self, ledger):
        ledger.contribute(underlying(100))
        ledger.protected_deposit(underlying(50))
        assert ledger.share_supply == Decimal("100")
        assert ledger.get_vault_amount() == Decimal("150")

    def test_snapshot_restore(self, ledger):
        ledger.contribute(underlying(100))
        state = ledger.snapshot()
        ledger.contribute(underlying(100))
        ledger.restore(state)
        assert ledger.get_vault_amount() == Decimal("100")
        assert ledger.share_supply == Decimal("100")
        assert ledger.to_dict()["vault_amount"] == "100"
