"""
BaasSDK - Main entry point of the BaaS SDK.

One ``BaasSDK`` instance owns the endpoint cache, transport, fee/gas-price
cache, nonce locks and account provider for one gateway. Every public
operation returns an ``SDKResult``; SDK errors are never raised to the
caller.
"""
import functools
import json
import logging
from contextlib import nullcontext
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError
from web3 import Web3

from .accounts import AccountProvider, EthTransactionCodec, KeystoreAccountManager, TransactionCodec
from .chain import ChainClient
from .config import SDKConfig
from .exceptions import (
    EncodingError, ErrorCode, InvalidArgumentError, MethodNotFoundError, SDKError
)
from .fees import ChainStateCache, ChainStatePoller
from .gateway.auth import AuthSigner
from .gateway.endpoint import EndpointCache
from .gateway.retry import RetryPolicy
from .gateway.transport import GatewayTransport, HTTPTransport
from .models import (
    UINT64_MAX, CallArgs, ContractExtension, SDKResult, TxArgs, checksum_address, parse_quantity
)
from .nonce_lock import AddressNonceLock
from .resolver import TxArgsResolver

logger = logging.getLogger(__name__)

ZERO_HASH = "0x" + "00" * 32


def api_operation(default: Any = None) -> Callable:
    """
    Turn a method raising ``SDKError`` into one returning ``SDKResult``.

    Args:
        default: Result value reported alongside an error
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs) -> SDKResult:
            try:
                return SDKResult(result=func(self, *args, **kwargs))
            except SDKError as e:
                self.logger.info(f"{func.__name__} failed: {e}")
                return SDKResult(result=default, error=e)
        return wrapper
    return decorator


def _invalid(code: ErrorCode, error: Union[ValidationError, ValueError]) -> InvalidArgumentError:
    if isinstance(error, ValidationError):
        first = error.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        detail = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        return InvalidArgumentError.from_code(code).join(ValueError(detail))
    return InvalidArgumentError.from_code(code).join(error)


class BaasSDK:
    """
    Client for a BaaS gateway acting on behalf of local accounts.

    To use this client, you'll need:
    - A gateway hostname (``xhost``) and namespace
    - A keystore directory, or a custom account provider
    - Optionally, an ``auth.json`` credential issued by the gateway
    """

    def __init__(
        self,
        config: Optional[SDKConfig] = None,
        account_provider: Optional[AccountProvider] = None,
        codec: Optional[TransactionCodec] = None,
        transport: Optional[GatewayTransport] = None,
        endpoint_cache: Optional[EndpointCache] = None,
        autostart: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the SDK.

        Args:
            config: SDK settings (defaults to ``SDKConfig()``)
            account_provider: Local account provider (defaults to a keystore
                directory at ``config.keystore``)
            codec: Signed-transaction codec
            transport: Gateway transport (defaults to ``HTTPTransport``)
            endpoint_cache: Endpoint cache for the gateway hostname
            autostart: Start background refresh and fetch the chain id now
            logger: Optional logger instance

        Raises:
            SDKError: If ``autostart`` is set and the chain id cannot be fetched
        """
        self.config = config or SDKConfig()
        self.logger = logger or logging.getLogger(__name__)

        self.endpoint_cache = endpoint_cache or EndpointCache(
            self.config.xhost,
            refresh_interval=self.config.dns_cache_update_interval,
        )
        self.transport = transport or HTTPTransport(
            self.endpoint_cache,
            signer=AuthSigner(self.config.auth),
            protocol=self.config.rpc_protocol,
            retry_policy=RetryPolicy(max_attempts=self.config.retry),
            connect_timeout=self.config.connect_timeout,
            read_timeout=self.config.read_timeout,
            verify_ssl=self.config.verify_ssl,
        )
        self.chain = ChainClient(self.transport, namespace=self.config.namespace)
        self.state = ChainStateCache()
        self.poller = ChainStatePoller(
            self.chain,
            self.state,
            poll_fee=self.config.get_fee,
            poll_gas_price=self.config.get_gas_price,
            interval=self.config.poll_interval,
        )
        self.resolver = TxArgsResolver(
            self.chain, self.state, use_polled_gas_price=self.config.get_gas_price
        )
        self.nonce_lock = AddressNonceLock()
        self.codec = codec or EthTransactionCodec()
        self.account_provider = account_provider or KeystoreAccountManager(self.config.keystore)
        self.chain_id = self.config.chain_id

        self._unlock_configured_accounts()
        if autostart:
            self.start()

    def _unlock_configured_accounts(self) -> None:
        unlock = getattr(self.account_provider, "unlock", None)
        if unlock is None:
            return
        for address, passphrase in self.config.unlock_accounts.items():
            try:
                unlock(address, passphrase)
            except SDKError as e:
                self.logger.warning(f"Could not unlock account {address}: {e.message}")

    def start(self) -> None:
        """
        Resolve the gateway, fetch the chain id and start background refresh.

        Raises:
            SDKError: If the chain id lookup fails
        """
        if isinstance(self.transport, HTTPTransport):
            self.endpoint_cache.start()
        if self.config.auth_enabled and not self.chain_id:
            self.chain_id = self.chain.get_chain_id()
            self.logger.info(f"Chain id from gateway: {self.chain_id}")
        self.poller.start()

    def close(self) -> None:
        self.poller.stop()
        self.endpoint_cache.stop()
        self.transport.close()

    def __enter__(self) -> "BaasSDK":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ---------------------------------------------------------------- helpers

    @staticmethod
    def _parse_tx_args(value: Union[TxArgs, Dict[str, Any]], code: ErrorCode) -> TxArgs:
        if isinstance(value, TxArgs):
            return value.model_copy()
        if not isinstance(value, dict):
            raise InvalidArgumentError.from_code(code).join(ValueError("transaction arguments must be an object"))
        try:
            return TxArgs.model_validate(value)
        except ValidationError as e:
            raise _invalid(code, e)

    @staticmethod
    def _parse_extension(value: Union[ContractExtension, Dict[str, Any], None]) -> Optional[ContractExtension]:
        if value is None or isinstance(value, ContractExtension):
            return value
        if not isinstance(value, dict):
            raise InvalidArgumentError.from_code(ErrorCode.CONTRACT_EXTENSION).join(
                ValueError("extension must be an object")
            )
        try:
            return ContractExtension.model_validate(value)
        except ValidationError as e:
            raise _invalid(ErrorCode.CONTRACT_EXTENSION, e)

    @staticmethod
    def _check_address(address: Any) -> str:
        try:
            return checksum_address(address)
        except ValueError as e:
            raise _invalid(ErrorCode.PARAMS, e)

    def _sign(self, args: TxArgs, wallet: Any, passphrase: Optional[str]) -> str:
        tx = args.to_transaction(self.chain_id)
        if passphrase is None:
            signed = self.account_provider.sign_transaction(wallet, tx, self.chain_id)
        else:
            signed = self.account_provider.sign_transaction_with_passphrase(
                wallet, passphrase, tx, self.chain_id
            )
        try:
            raw = self.codec.encode_canonical(signed)
        except (AttributeError, TypeError, ValueError) as e:
            self.logger.error(f"Encoding signed transaction failed: {e}")
            raise EncodingError().join(e)
        return Web3.to_hex(raw)

    def _submit(
        self,
        tx_args: Union[TxArgs, Dict[str, Any]],
        passphrase: Optional[str],
        extension: Optional[ContractExtension]
    ) -> Any:
        args = self._parse_tx_args(tx_args, ErrorCode.SEND_TX_ARGS)
        wallet = self.account_provider.find(args.from_)

        # An explicit nonce means the caller owns ordering for this address
        guard = self.nonce_lock.acquire(args.from_) if args.nonce is None else nullcontext()
        with guard:
            self.resolver.resolve(args)
            raw = self._sign(args, wallet, passphrase)
            if extension is None:
                tx_hash = self.chain.send_raw_transaction(raw)
            else:
                tx_hash = self.chain.send_contract_transaction(raw, extension)
        self.logger.info(f"Submitted transaction {tx_hash} from {args.from_} with nonce {args.nonce}")
        return tx_hash

    # ------------------------------------------------------------- accounts

    @api_operation(default="")
    def new_account(self, passphrase: str) -> str:
        if not isinstance(passphrase, str):
            raise InvalidArgumentError(code=ErrorCode.PARAMS)
        return self.account_provider.new_account(passphrase)

    @api_operation()
    def accounts(self) -> List[str]:
        return self.account_provider.accounts()

    # ---------------------------------------------------------------- reads

    @api_operation(default=0)
    def get_balance(self, address: str) -> int:
        address = self._check_address(address)
        self.account_provider.find(address)
        return self.chain.get_balance(address)

    @api_operation(default=0)
    def get_transaction_count(self, address: str) -> int:
        address = self._check_address(address)
        self.account_provider.find(address)
        return self.chain.get_transaction_count(address, "pending")

    @api_operation(default=0)
    def block_number(self) -> int:
        return self.chain.block_number()

    @api_operation()
    def get_transaction_by_hash(self, from_address: str, tx_hash: str) -> Any:
        from_address = self._check_address(from_address)
        self.account_provider.find(from_address)
        return self.chain.get_transaction_by_hash(tx_hash, from_hint=from_address)

    @api_operation()
    def get_transaction_receipt(self, tx_hash: str, from_address: Optional[str] = None) -> Any:
        if not isinstance(tx_hash, str):
            raise InvalidArgumentError(code=ErrorCode.PARAMS)
        return self.chain.get_transaction_receipt(tx_hash, from_hint=from_address)

    @api_operation()
    def get_block_by_number(self, number: Union[int, str], full_tx: bool = False) -> Any:
        try:
            # block numbers are decimal only
            block = parse_quantity(number, "number", base=10, maximum=UINT64_MAX)
        except ValueError as e:
            raise _invalid(ErrorCode.PARAMS, e)
        if block is None or not isinstance(full_tx, bool):
            raise InvalidArgumentError(code=ErrorCode.PARAMS)
        return self.chain.get_block_by_number(block, full_tx)

    @api_operation()
    def get_block_by_hash(self, block_hash: str, full_tx: bool = False) -> Any:
        if not isinstance(block_hash, str) or not isinstance(full_tx, bool):
            raise InvalidArgumentError(code=ErrorCode.PARAMS)
        return self.chain.get_block_by_hash(block_hash, full_tx)

    @api_operation()
    def call(self, call_args: Union[CallArgs, Dict[str, Any]]) -> Any:
        if not isinstance(call_args, CallArgs):
            if not isinstance(call_args, dict):
                raise InvalidArgumentError(code=ErrorCode.SEND_TX_ARGS)
            try:
                call_args = CallArgs.model_validate(call_args)
            except ValidationError as e:
                raise _invalid(ErrorCode.SEND_TX_ARGS, e)
        self.account_provider.find(call_args.from_)
        return self.chain.call(call_args.from_, call_args.to, call_args.data)

    # ---------------------------------------------------------- submissions

    @api_operation(default=ZERO_HASH)
    def send_transaction(
        self,
        tx_args: Union[TxArgs, Dict[str, Any]],
        passphrase: Optional[str] = None
    ) -> Any:
        """
        Resolve, sign and submit a transaction.

        Without an explicit nonce the sender's nonce lock is held from the
        nonce query until the submission returns.
        """
        return self._submit(tx_args, passphrase, None)

    @api_operation(default=ZERO_HASH)
    def send_contract_transaction(
        self,
        tx_args: Union[TxArgs, Dict[str, Any]],
        passphrase: Optional[str] = None,
        extension: Union[ContractExtension, Dict[str, Any], None] = None
    ) -> Any:
        return self._submit(tx_args, passphrase, self._parse_extension(extension))

    @api_operation(default="")
    def sign_tx(self, tx_args: Union[TxArgs, Dict[str, Any]]) -> str:
        """Sign a transaction with an explicit nonce and return the raw hex."""
        args = self._parse_tx_args(tx_args, ErrorCode.SIGN_TX_ARGS)
        wallet = self.account_provider.find(args.from_)
        if args.nonce is None:
            raise InvalidArgumentError.from_code(ErrorCode.SIGN_TX_ARGS).join(
                ValueError("nonce should not be nil")
            )
        self.resolver.resolve(args)
        return self._sign(args, wallet, None)

    @api_operation(default="")
    def send_raw_transaction(self, raw: str) -> Any:
        if not isinstance(raw, str):
            raise InvalidArgumentError.from_code(ErrorCode.SEND_RAW_TRANSACTION).join(
                ValueError("params[0] type error")
            )
        return self.chain.send_raw_transaction(raw)

    # ------------------------------------------------------------------ fees

    @api_operation(default=0)
    def calc_fee(self, amount: Union[int, str]) -> int:
        try:
            value = parse_quantity(amount, "amount")
        except ValueError as e:
            raise _invalid(ErrorCode.PARAMS, e)
        if value is None:
            raise InvalidArgumentError(code=ErrorCode.PARAMS)
        return self.state.calculator().fee(value)

    # ------------------------------------------------------------ dispatching

    def dispatch(self, method: str, params: Optional[Sequence[Any]] = None) -> SDKResult:
        """
        Run an operation by its JSON method name with positional params.

        Unknown methods and wrong parameter counts are reported as errors.
        """
        params = list(params or [])
        handler = _DISPATCH.get(method)
        if handler is None:
            return SDKResult(error=MethodNotFoundError())
        try:
            return handler(self, params)
        except InvalidArgumentError as e:
            return SDKResult(result="", error=e)

    def handle_request(self, body: Union[str, bytes]) -> Dict[str, Any]:
        """
        Handle a JSON request ``{"id", "jsonrpc", "method", "params"}``.

        Returns:
            ``{"id", "jsonrpc", "result", "errcode", "errmsg"}``
        """
        try:
            request = json.loads(body)
            if not isinstance(request, dict):
                raise ValueError("request must be a JSON object")
        except ValueError as e:
            error = SDKError.from_code(ErrorCode.JSON_UNMARSHAL).join(e)
            return {"id": 0, "jsonrpc": "", "result": None, "errcode": error.code, "errmsg": error.message}

        params = request.get("params")
        if params is not None and not isinstance(params, list):
            outcome = SDKResult(result="", error=InvalidArgumentError(code=ErrorCode.PARAMS))
        else:
            outcome = self.dispatch(str(request.get("method", "")), params)
        error = outcome.error if not outcome.ok else SDKError.from_code(ErrorCode.SUCCESS)
        return {
            "id": request.get("id", 0),
            "jsonrpc": request.get("jsonrpc", ""),
            "result": outcome.result,
            "errcode": error.code,
            "errmsg": error.message,
        }


def _arity(params: List[Any], *allowed: int) -> None:
    if len(params) not in allowed:
        raise InvalidArgumentError(code=ErrorCode.PARAMS)


def _send_contract(sdk: BaasSDK, params: List[Any]) -> SDKResult:
    _arity(params, 1, 2, 3)
    if len(params) == 1:
        return sdk.send_contract_transaction(params[0])
    if len(params) == 2:
        return sdk.send_contract_transaction(params[0], extension=params[1])
    if not isinstance(params[1], str):
        raise InvalidArgumentError(code=ErrorCode.PARAMS)
    return sdk.send_contract_transaction(params[0], passphrase=params[1], extension=params[2])


def _send(sdk: BaasSDK, params: List[Any]) -> SDKResult:
    _arity(params, 1, 2)
    if len(params) == 2 and not isinstance(params[1], str):
        raise InvalidArgumentError(code=ErrorCode.PARAMS)
    return sdk.send_transaction(*params)


def _fixed(name: str, *allowed: int) -> Callable[[BaasSDK, List[Any]], SDKResult]:
    def handler(sdk: BaasSDK, params: List[Any]) -> SDKResult:
        _arity(params, *allowed)
        return getattr(sdk, name)(*params)
    return handler


_DISPATCH: Dict[str, Callable[[BaasSDK, List[Any]], SDKResult]] = {
    "newAccount": _fixed("new_account", 1),
    "accounts": _fixed("accounts", 0),
    "getBalance": _fixed("get_balance", 1),
    "getTransactionCount": _fixed("get_transaction_count", 1),
    "blockNumber": _fixed("block_number", 0),
    "getTransactionByHash": _fixed("get_transaction_by_hash", 2),
    "getTransactionReceipt": _fixed("get_transaction_receipt", 1, 2),
    "getBlockByNumber": _fixed("get_block_by_number", 1, 2),
    "getBlockByHash": _fixed("get_block_by_hash", 1, 2),
    "sendTransaction": _send,
    "sendContractTransaction": _send_contract,
    "call": _fixed("call", 1),
    "signTx": _fixed("sign_tx", 1),
    "sendRawTransaction": _fixed("send_raw_transaction", 1),
    "calcFee": _fixed("calc_fee", 1),
}
