"""
Pytest fixtures for the BaaS SDK tests.
"""
import hashlib
import json
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from baas_sdk.config import SDKConfig
from baas_sdk.exceptions import AccountNotFoundError, ErrorCode, SigningError
from baas_sdk.gateway._rate_limited_log import reset_rate_limited_log
from baas_sdk.gateway.transport import GatewayTransport
from baas_sdk.models import RpcErrorBody, RpcResponse
from baas_sdk.sdk import BaasSDK

# Digit-only addresses are their own checksum form
ADDRESS_A = "0x1234567890123456789012345678901234567890"
ADDRESS_B = "0x2345678901234567890123456789012345678901"
ADDRESS_TO = "0x3456789012345678901234567890123456789012"
UNKNOWN_ADDRESS = "0x4567890123456789012345678901234567890123"
TEST_PASSPHRASE = "secret"
TEST_HOST = "gateway.example.com"


@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    """Make time.sleep instantaneous so retries don't slow the suite down"""
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _reset_log_cache():
    reset_rate_limited_log()
    yield
    reset_rate_limited_log()


class FakeGateway(GatewayTransport):
    """
    In-memory gateway speaking the SDK's chain API.

    Tracks a pending nonce per sender and rejects submissions whose nonce
    does not match, like a real node would.
    """

    def __init__(self, namespace: str = "tcapi", delay: float = 0.0):
        self.namespace = namespace
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.pending: Dict[str, int] = {}
        self.submitted: List[Dict[str, Any]] = []
        self.handlers: Dict[str, Callable[[List[Any]], Any]] = {
            "getTransactionCount": self._get_transaction_count,
            "sendRawTransaction": self._send_raw_transaction,
            "estimateGas": lambda params: "0x5208",
            "gasPrice": lambda params: "0x3b9aca00",
            "getBalance": lambda params: "0xde0b6b3a7640000",
            "blockNumber": lambda params: "0x10",
            "getFee": lambda params: {"min": "1000000000000", "max": "0", "rate": 100},
            "getBaasSdkConf": None,
        }
        self.errors: Dict[str, RpcErrorBody] = {}
        self._lock = threading.Lock()
        self.closed = False

    def _get_transaction_count(self, params: List[Any]) -> str:
        address = params[0].lower()
        with self._lock:
            nonce = self.pending.get(address, 0)
        # widen the read-then-submit window
        if self.delay:
            threading.Event().wait(self.delay)
        return hex(nonce)

    def _send_raw_transaction(self, params: List[Any]) -> Any:
        decoded = json.loads(bytes.fromhex(params[0][2:]))
        sender = decoded["from"].lower()
        with self._lock:
            expected = self.pending.get(sender, 0)
            if decoded["nonce"] != expected:
                return RpcErrorBody(code=-32000, message=f"invalid nonce {decoded['nonce']}, expected {expected}")
            self.pending[sender] = expected + 1
            self.submitted.append(decoded)
        return "0x" + hashlib.sha256(params[0].encode()).hexdigest()

    def call(
        self,
        method: str,
        params: Sequence[Any],
        auth_params: Optional[Sequence[str]] = None,
        extension: Optional[Dict[str, Any]] = None,
        from_hint: Optional[str] = None
    ) -> RpcResponse:
        with self._lock:
            self.calls.append({
                "method": method,
                "params": list(params),
                "auth_params": auth_params,
                "extension": extension,
                "from_hint": from_hint,
            })
        verb = method.split("_", 1)[1]
        if verb in self.errors:
            return RpcResponse(id=1, error=self.errors[verb])
        handler = self.handlers.get(verb)
        if handler is None:
            return RpcResponse(id=1, error=RpcErrorBody(code=-32601, message="method not found"))
        result = handler(list(params))
        if isinstance(result, RpcErrorBody):
            return RpcResponse(id=1, error=result)
        if isinstance(result, RpcResponse):
            return result
        return RpcResponse(id=1, result=result)

    def verbs(self) -> List[str]:
        return [c["method"].split("_", 1)[1] for c in self.calls]

    def close(self) -> None:
        self.closed = True


class FakeAccountProvider:
    """Account provider that signs by echoing the transaction fields."""

    def __init__(self, addresses: Sequence[str] = (ADDRESS_A, ADDRESS_B)):
        self.addresses = {a.lower(): a for a in addresses}
        self.signed: List[Dict[str, Any]] = []
        self.unlocked: Dict[str, str] = {}
        self._lock = threading.Lock()

    def find(self, address: str) -> str:
        if address.lower() not in self.addresses:
            raise AccountNotFoundError()
        return self.addresses[address.lower()]

    def _sign(self, wallet: str, tx: Dict[str, Any], chain_id: Optional[int]) -> Dict[str, Any]:
        signed = dict(tx, data=tx["data"].hex(), chainId=chain_id)
        signed["from"] = wallet
        with self._lock:
            self.signed.append(signed)
        return signed

    def sign_transaction(self, wallet: str, tx: Dict[str, Any], chain_id: Optional[int]) -> Dict[str, Any]:
        return self._sign(wallet, tx, chain_id)

    def sign_transaction_with_passphrase(
        self, wallet: str, passphrase: str, tx: Dict[str, Any], chain_id: Optional[int]
    ) -> Dict[str, Any]:
        if passphrase != TEST_PASSPHRASE:
            raise SigningError(code=ErrorCode.SIGN_TX_WITH_PASSPHRASE)
        return self._sign(wallet, tx, chain_id)

    def unlock(self, address: str, passphrase: str) -> None:
        self.unlocked[address] = passphrase

    def new_account(self, passphrase: str) -> str:
        address = ADDRESS_TO
        self.addresses[address.lower()] = address
        return address

    def accounts(self) -> List[str]:
        return list(self.addresses.values())


class FakeCodec:
    def encode_canonical(self, signed: Dict[str, Any]) -> bytes:
        return json.dumps(signed, sort_keys=True).encode()

    def hash(self, signed: Dict[str, Any]) -> bytes:
        return hashlib.sha256(self.encode_canonical(signed)).digest()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def fake_accounts():
    return FakeAccountProvider()


@pytest.fixture
def sdk_config(tmp_path):
    return SDKConfig(keystore=str(tmp_path / "keystore"), chain_id=30261, xhost=TEST_HOST)


@pytest.fixture
def sdk(sdk_config, fake_gateway, fake_accounts):
    """SDK wired to the in-memory gateway and account provider."""
    instance = BaasSDK(
        sdk_config,
        account_provider=fake_accounts,
        codec=FakeCodec(),
        transport=fake_gateway,
        autostart=False,
    )
    yield instance
    instance.close()
