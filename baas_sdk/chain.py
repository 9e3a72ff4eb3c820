"""
Typed wrappers for the gateway's chain RPC methods.
"""
import logging
from typing import Any, Dict, Optional, Sequence

from .exceptions import ErrorCode, ProtocolError, RPCError, TransportError
from .gateway.transport import GatewayTransport
from .models import ContractExtension, FeeSchedule, RpcResponse

logger = logging.getLogger(__name__)

# Fee bounds are published in the smallest unit; the fee formula works in
# units of 1e11.
FEE_UNIT_DIVISOR = 10 ** 11


def to_int(value: Any) -> int:
    """
    Convert a JSON-RPC quantity (hex string, decimal string or number) to int.

    Raises:
        ValueError: If the value is not a quantity
    """
    if isinstance(value, bool):
        raise ValueError(f"not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        return int(value, 0)
    raise ValueError(f"not a quantity: {value!r}")


class ChainClient:
    """
    Client for the chain API exposed by the gateway.

    Every method raises ``TransportError`` when the gateway is unreachable,
    ``ProtocolError`` when the reply cannot be decoded and ``RPCError`` with
    the gateway's code when the reply carries an application error.
    """

    def __init__(self, transport: GatewayTransport, namespace: str = "tcapi"):
        self.transport = transport
        self.namespace = namespace

    def method(self, verb: str) -> str:
        return f"{self.namespace}_{verb}"

    def _call(
        self,
        verb: str,
        params: Sequence[Any],
        code: ErrorCode,
        auth_params: Optional[Sequence[str]] = None,
        extension: Optional[Dict[str, Any]] = None,
        from_hint: Optional[str] = None
    ) -> RpcResponse:
        method = self.method(verb)
        try:
            response = self.transport.call(
                method,
                params,
                auth_params=auth_params,
                extension=extension,
                from_hint=from_hint,
            )
        except TransportError as e:
            logger.error(f"{method} error: {e.message}")
            raise TransportError.from_code(code).join(e)
        logger.info(f"{method} params={list(params)} result={response.result!r} code={response.error_code}")
        if not response.ok:
            raise RPCError(response.error_message, code=response.error_code)
        return response

    def _quantity(self, response: RpcResponse, code: ErrorCode, default: Optional[int] = 0) -> Optional[int]:
        if response.result is None:
            return default
        try:
            return to_int(response.result)
        except ValueError as e:
            raise ProtocolError.from_code(code).join(e)

    # ------------------------------------------------------------------ reads

    def get_transaction_count(self, address: str, block: str = "pending") -> int:
        response = self._call("getTransactionCount", [address, block], ErrorCode.RPC_GET_NONCE)
        return self._quantity(response, ErrorCode.RPC_GET_NONCE)

    def get_balance(self, address: str, block: str = "latest") -> int:
        response = self._call("getBalance", [address, block], ErrorCode.RPC_GET_BALANCE)
        return self._quantity(response, ErrorCode.RPC_GET_BALANCE)

    def gas_price(self) -> Optional[int]:
        """Return the gateway gas price, or None if the gateway has none."""
        response = self._call("gasPrice", [], ErrorCode.RPC_GET_GAS_PRICE)
        price = self._quantity(response, ErrorCode.RPC_GET_GAS_PRICE, default=None)
        if price is None:
            logger.error("gasPrice returned no result")
        return price

    def get_fee(self) -> FeeSchedule:
        response = self._call("getFee", [], ErrorCode.RPC_GET_FEE)
        result = response.result or {}
        try:
            min_fee = to_int(result.get("min", 0) or 0) // FEE_UNIT_DIVISOR
            max_fee = to_int(result.get("max", 0) or 0) // FEE_UNIT_DIVISOR
            rate = to_int(result.get("rate", 0) or 0)
        except (AttributeError, ValueError) as e:
            raise ProtocolError.from_code(ErrorCode.RPC_GET_FEE).join(e)
        return FeeSchedule(min=min_fee, max=max_fee, rate=rate)

    def estimate_gas(self, from_address: str, to_address: Optional[str], data: str, value: int) -> int:
        value_hex = hex(value)
        to_address = to_address or ""
        params = [{"from": from_address, "to": to_address, "value": value_hex, "data": data}]
        response = self._call(
            "estimateGas",
            params,
            ErrorCode.RPC_ESTIMATE_GAS,
            auth_params=[from_address, to_address, value_hex, data],
        )
        return self._quantity(response, ErrorCode.RPC_ESTIMATE_GAS)

    def block_number(self) -> int:
        response = self._call("blockNumber", [], ErrorCode.RPC_BLOCK_NUMBER)
        return self._quantity(response, ErrorCode.RPC_BLOCK_NUMBER)

    def get_block_by_number(self, number: int, full_tx: bool = False) -> Any:
        number_hex = hex(number)
        response = self._call(
            "getBlockByNumber",
            [number_hex, full_tx],
            ErrorCode.RPC_GET_BLOCK_BY_NUMBER,
            auth_params=[number_hex, "true" if full_tx else "false"],
        )
        return response.result

    def get_block_by_hash(self, block_hash: str, full_tx: bool = False) -> Any:
        response = self._call(
            "getBlockByHash",
            [block_hash, full_tx],
            ErrorCode.RPC_GET_BLOCK_BY_HASH,
            auth_params=[block_hash, "true" if full_tx else "false"],
        )
        return response.result

    def get_transaction_by_hash(self, tx_hash: str, from_hint: Optional[str] = None) -> Any:
        response = self._call(
            "getTransactionByHash", [tx_hash], ErrorCode.RPC_GET_TRANSACTION_BY_HASH, from_hint=from_hint
        )
        return response.result

    def get_transaction_receipt(self, tx_hash: str, from_hint: Optional[str] = None) -> Any:
        response = self._call(
            "getTransactionReceipt", [tx_hash], ErrorCode.RPC_GET_TRANSACTION_RECEIPT, from_hint=from_hint
        )
        return response.result

    def call(self, from_address: str, to_address: str, data: str, block: str = "latest") -> Any:
        params = [{"from": from_address, "to": to_address, "data": data}, block]
        response = self._call(
            "call",
            params,
            ErrorCode.RPC_CALL,
            auth_params=[from_address, to_address, data],
        )
        return response.result

    def get_chain_id(self) -> int:
        """
        Fetch the chain id assigned to this SDK credential.

        The gateway answers ``getBaasSdkConf`` with a ``code``/``msg``/``data``
        body rather than ``result``/``error``.
        """
        response = self._call("getBaasSdkConf", [], ErrorCode.RPC_GET_CHAIN_ID)
        extra = response.extra
        code = extra.get("code", 0)
        if code:
            raise RPCError(str(extra.get("msg", "")), code=int(code))
        data = extra.get("data") or response.result or {}
        try:
            return to_int(data["chainid"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError.from_code(ErrorCode.RPC_GET_CHAIN_ID).join(e)

    # ------------------------------------------------------------ submissions

    def send_raw_transaction(self, raw: str) -> Any:
        """Submit a signed, hex-encoded transaction and return its hash."""
        response = self._call("sendRawTransaction", [raw], ErrorCode.RPC_SEND_TRANSACTION)
        return response.result

    def send_contract_transaction(self, raw: str, extension: ContractExtension) -> Any:
        """Submit a signed contract transaction with extension metadata."""
        response = self._call(
            "sendRawTransaction",
            [raw],
            ErrorCode.RPC_SEND_CONTRACT_TRANSACTION,
            extension=extension.model_dump(),
        )
        return response.result
