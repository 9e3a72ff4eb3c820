"""
BaaS SDK - client library for submitting transactions through a BaaS
JSON-RPC gateway on behalf of local accounts.
"""
from .version import __version__
from .config import SDKConfig, load_auth_file, load_unlock_file
from .sdk import BaasSDK
from .models import (
    AuthCredential, CallArgs, ContractExtension, FeeSchedule, RpcRequest,
    RpcResponse, SDKResult, TxArgs
)
from .exceptions import (
    AccountNotFoundError, EncodingError, ErrorCode, InvalidArgumentError,
    ProtocolError, RPCError, SDKError, SigningError, TransportError
)
from .accounts import KeystoreAccountManager, EthTransactionCodec
from .fees import FeeCalculator

__all__ = [
    "__version__",
    "BaasSDK",
    "SDKConfig",
    "load_auth_file",
    "load_unlock_file",
    "AuthCredential",
    "CallArgs",
    "ContractExtension",
    "FeeSchedule",
    "RpcRequest",
    "RpcResponse",
    "SDKResult",
    "TxArgs",
    "SDKError",
    "ErrorCode",
    "TransportError",
    "ProtocolError",
    "RPCError",
    "InvalidArgumentError",
    "AccountNotFoundError",
    "SigningError",
    "EncodingError",
    "KeystoreAccountManager",
    "EthTransactionCodec",
    "FeeCalculator",
]
