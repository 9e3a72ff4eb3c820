"""
Tests for fee calculation and the polled chain state.
"""
from unittest.mock import MagicMock

import pytest
from hypothesis import given
from hypothesis import strategies as st

from baas_sdk.chain import ChainClient
from baas_sdk.exceptions import TransportError
from baas_sdk.fees import WHOLE_UNIT, ChainStateCache, ChainStatePoller, FeeCalculator
from baas_sdk.models import FeeSchedule


@pytest.mark.parametrize("amount,expected", [
    (0, 0),
    (1, 10000),
    (WHOLE_UNIT, 10000),
    (WHOLE_UNIT + WHOLE_UNIT // 2, 20000),
    (2 * WHOLE_UNIT, 20000),
    (10 * WHOLE_UNIT - 1, 100000),
])
def test_fee_rounds_up_partial_units(amount, expected):
    assert FeeCalculator(FeeSchedule(rate=100)).fee(amount) == expected


def test_fee_clamped_to_min():
    calc = FeeCalculator(FeeSchedule(min=50000, max=0, rate=100))
    assert calc.fee(WHOLE_UNIT) == 50000
    assert calc.fee(0) == 50000


def test_fee_clamped_to_max():
    calc = FeeCalculator(FeeSchedule(min=0, max=30000, rate=100))
    assert calc.fee(WHOLE_UNIT) == 10000
    assert calc.fee(5 * WHOLE_UNIT) == 30000


def test_zero_max_is_unbounded():
    calc = FeeCalculator(FeeSchedule(min=0, max=0, rate=100))
    assert calc.fee(1000 * WHOLE_UNIT) == 1000 * 100 * 100


def test_negative_amount_rejected():
    with pytest.raises(ValueError):
        FeeCalculator(FeeSchedule(rate=1)).fee(-1)


@given(
    amount=st.integers(min_value=0, max_value=10 ** 30),
    min_fee=st.integers(min_value=0, max_value=10 ** 9),
    spread=st.integers(min_value=0, max_value=10 ** 9),
    rate=st.integers(min_value=0, max_value=10 ** 4),
)
def test_fee_within_bounds(amount, min_fee, spread, rate):
    schedule = FeeSchedule(min=min_fee, max=min_fee + spread, rate=rate)
    fee = FeeCalculator(schedule).fee(amount)
    assert schedule.min <= fee <= schedule.max or (schedule.max == 0 and fee >= schedule.min)


@given(amount=st.integers(min_value=0, max_value=10 ** 30))
def test_fee_monotonic(amount):
    calc = FeeCalculator(FeeSchedule(min=0, max=0, rate=7))
    assert calc.fee(amount) <= calc.fee(amount + WHOLE_UNIT)


class TestChainStatePoller:

    @pytest.fixture
    def chain(self):
        return MagicMock(spec=ChainClient)

    def test_poll_once_updates_cache(self, chain):
        chain.get_fee.return_value = FeeSchedule(min=1, max=2, rate=3)
        chain.gas_price.return_value = 2 * 10 ** 9
        cache = ChainStateCache()
        ChainStatePoller(chain, cache, poll_fee=True, poll_gas_price=True).poll_once()
        assert cache.fee_schedule == FeeSchedule(min=1, max=2, rate=3)
        assert cache.gas_price == 2 * 10 ** 9

    def test_failure_keeps_previous_values(self, chain):
        chain.get_fee.side_effect = TransportError("down")
        chain.gas_price.side_effect = TransportError("down")
        cache = ChainStateCache(FeeSchedule(rate=5), gas_price=7)
        ChainStatePoller(chain, cache, poll_fee=True, poll_gas_price=True).poll_once()
        assert cache.fee_schedule.rate == 5
        assert cache.gas_price == 7

    def test_missing_gas_price_keeps_previous(self, chain):
        chain.gas_price.return_value = None
        cache = ChainStateCache(gas_price=7)
        ChainStatePoller(chain, cache, poll_gas_price=True).poll_once()
        assert cache.gas_price == 7

    def test_disabled_poller_does_nothing(self, chain):
        poller = ChainStatePoller(chain, ChainStateCache())
        assert not poller.enabled
        poller.poll_once()
        poller.start()
        assert poller._thread is None
        chain.get_fee.assert_not_called()
        chain.gas_price.assert_not_called()

    def test_start_and_stop(self, chain):
        chain.get_fee.return_value = FeeSchedule(rate=9)
        cache = ChainStateCache()
        poller = ChainStatePoller(chain, cache, poll_fee=True, interval=0.01)
        poller.start()
        try:
            for _ in range(200):
                if cache.fee_schedule.rate == 9:
                    break
                poller._stop_event.wait(0.01)
        finally:
            poller.stop(timeout=5)
        assert cache.fee_schedule.rate == 9
        assert poller._thread is None


def test_calculator_uses_cached_schedule():
    cache = ChainStateCache()
    assert cache.calculator().fee(WHOLE_UNIT) == 0
    cache.fee_schedule = FeeSchedule(rate=100)
    assert cache.calculator().fee(WHOLE_UNIT) == 10000
