"""
Tests for transaction argument resolution.
"""
from unittest.mock import MagicMock, call

import pytest

from baas_sdk.chain import ChainClient
from baas_sdk.exceptions import ErrorCode, TransportError
from baas_sdk.fees import ChainStateCache
from baas_sdk.models import TxArgs
from baas_sdk.resolver import DEFAULT_GAS_PRICE, TxArgsResolver

SENDER = "0x1234567890123456789012345678901234567890"
TO = "0x3456789012345678901234567890123456789012"


@pytest.fixture
def chain():
    chain = MagicMock(spec=ChainClient)
    chain.estimate_gas.return_value = 21000
    chain.get_transaction_count.return_value = 5
    return chain


def test_fills_every_missing_field(chain):
    args = TxArgs.model_validate({"from": SENDER, "to": TO, "data": "0xabcd"})
    resolved = TxArgsResolver(chain).resolve(args)

    assert resolved is args
    assert args.gas_price == DEFAULT_GAS_PRICE == 10 ** 11
    assert args.value == 0
    assert args.gas == 21000
    assert args.nonce == 5
    assert args.is_resolved
    chain.estimate_gas.assert_called_once_with(SENDER, TO, "0xabcd", 0)
    chain.get_transaction_count.assert_called_once_with(SENDER, "pending")


def test_caller_values_untouched(chain):
    args = TxArgs.model_validate({
        "from": SENDER, "to": TO, "gas": 50000, "gasPrice": 7, "value": "0x10", "nonce": 3,
    })
    TxArgsResolver(chain).resolve(args)
    assert (args.gas, args.gas_price, args.value, args.nonce) == (50000, 7, 16, 3)
    chain.estimate_gas.assert_not_called()
    chain.get_transaction_count.assert_not_called()


def test_resolution_order(chain):
    manager = MagicMock()
    manager.attach_mock(chain.estimate_gas, "estimate_gas")
    manager.attach_mock(chain.get_transaction_count, "get_transaction_count")
    args = TxArgs.model_validate({"from": SENDER, "value": 9})
    TxArgsResolver(chain).resolve(args)
    assert manager.mock_calls == [
        call.estimate_gas(SENDER, None, "0x", 9),
        call.get_transaction_count(SENDER, "pending"),
    ]


def test_polled_gas_price_used_when_enabled(chain):
    state = ChainStateCache(gas_price=123)
    args = TxArgs.model_validate({"from": SENDER, "to": TO})
    TxArgsResolver(chain, state, use_polled_gas_price=True).resolve(args)
    assert args.gas_price == 123


def test_polled_gas_price_ignored_when_disabled(chain):
    state = ChainStateCache(gas_price=123)
    args = TxArgs.model_validate({"from": SENDER, "to": TO})
    TxArgsResolver(chain, state).resolve(args)
    assert args.gas_price == DEFAULT_GAS_PRICE


def test_default_until_first_poll(chain):
    args = TxArgs.model_validate({"from": SENDER, "to": TO})
    TxArgsResolver(chain, ChainStateCache(), use_polled_gas_price=True).resolve(args)
    assert args.gas_price == DEFAULT_GAS_PRICE


def test_estimate_failure_propagates_unchanged(chain):
    error = TransportError.from_code(ErrorCode.RPC_ESTIMATE_GAS)
    chain.estimate_gas.side_effect = error
    args = TxArgs.model_validate({"from": SENDER, "to": TO})
    with pytest.raises(TransportError) as exc_info:
        TxArgsResolver(chain).resolve(args)
    assert exc_info.value is error
    assert args.nonce is None
    chain.get_transaction_count.assert_not_called()


def test_nonce_failure_propagates(chain):
    chain.get_transaction_count.side_effect = TransportError.from_code(ErrorCode.RPC_GET_NONCE)
    args = TxArgs.model_validate({"from": SENDER, "to": TO})
    with pytest.raises(TransportError) as exc_info:
        TxArgsResolver(chain).resolve(args)
    assert exc_info.value.code == ErrorCode.RPC_GET_NONCE
