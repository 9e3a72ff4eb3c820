"""
Exceptions for the BaaS SDK.

Every error carries a numeric ``code`` and a ``message``. Codes in the
``ErrorCode`` enum are generated locally; application errors returned by
the gateway keep the gateway's own code.
"""
from enum import IntEnum
from typing import Any, Dict, Optional, Union


class ErrorCode(IntEnum):
    """
    Error codes reported by the SDK.

    Negative values below -1000 are produced locally and never collide with
    codes returned by the gateway.
    """
    SUCCESS = 0
    METHOD = -1000
    PARAMS = -1001
    ACCOUNT_FIND = -1002
    RPC_GET_BALANCE = -1003
    NEW_ACCOUNT = -1004
    RPC_GET_NONCE = -1005
    SIGN_TX = -1006
    ENCODE_TX = -1007
    RPC_SEND_TRANSACTION = -1008
    SIGN_TX_WITH_PASSPHRASE = -1009
    CONTRACT_EXTENSION = -1012
    RPC_SEND_CONTRACT_TRANSACTION = -1013
    JSON_UNMARSHAL = -1018
    RPC_GET_TRANSACTION_BY_HASH = -1019
    RPC_GET_TRANSACTION_RECEIPT = -1020
    SEND_TX_ARGS = -1021
    RPC_GET_GAS_PRICE = -1022
    RPC_CALL = -1023
    RPC_ESTIMATE_GAS = -1024
    RPC_BLOCK_NUMBER = -1025
    RPC_GET_BLOCK_BY_HASH = -1026
    RPC_GET_BLOCK_BY_NUMBER = -1027
    SIGN_TX_ARGS = -1028
    SEND_RAW_TRANSACTION = -1029
    TRANSPORT = -1030
    RPC_GET_FEE = -1031
    RPC_GET_CHAIN_ID = -1032


_DEFAULT_MESSAGES = {
    ErrorCode.SUCCESS: "success",
    ErrorCode.METHOD: "invalid method",
    ErrorCode.PARAMS: "params err",
    ErrorCode.ACCOUNT_FIND: "find account err",
    ErrorCode.RPC_GET_BALANCE: "rpc getBalance err",
    ErrorCode.NEW_ACCOUNT: "new account err",
    ErrorCode.RPC_GET_NONCE: "rpc getNonce err",
    ErrorCode.SIGN_TX: "SDK SignTx err",
    ErrorCode.ENCODE_TX: "encode transaction err",
    ErrorCode.RPC_SEND_TRANSACTION: "rpc sendTransaction err",
    ErrorCode.SIGN_TX_WITH_PASSPHRASE: "SDK SignTxWithPassphrase err",
    ErrorCode.CONTRACT_EXTENSION: "ContractExtension err",
    ErrorCode.RPC_SEND_CONTRACT_TRANSACTION: "rpc sendContractTransaction err",
    ErrorCode.JSON_UNMARSHAL: "json unmarshal err",
    ErrorCode.RPC_GET_TRANSACTION_BY_HASH: "rpc getTransactionByHash err",
    ErrorCode.RPC_GET_TRANSACTION_RECEIPT: "rpc getTransactionReceipt err",
    ErrorCode.SEND_TX_ARGS: "SendTxArgs err",
    ErrorCode.RPC_GET_GAS_PRICE: "rpc getGasPrice err",
    ErrorCode.RPC_CALL: "rpc call err",
    ErrorCode.RPC_ESTIMATE_GAS: "rpc EstimateGas err",
    ErrorCode.RPC_BLOCK_NUMBER: "rpc BlockNumber err",
    ErrorCode.RPC_GET_BLOCK_BY_HASH: "rpc getBlockByHash err",
    ErrorCode.RPC_GET_BLOCK_BY_NUMBER: "rpc getBlockByNumber err",
    ErrorCode.SIGN_TX_ARGS: "SignTx args err",
    ErrorCode.SEND_RAW_TRANSACTION: "SendRawTransaction error",
    ErrorCode.TRANSPORT: "gateway transport err",
    ErrorCode.RPC_GET_FEE: "rpc getFee err",
    ErrorCode.RPC_GET_CHAIN_ID: "rpc getBaasSdkConf err",
}


class SDKError(Exception):
    """Base exception for all SDK errors."""

    default_code = ErrorCode.PARAMS

    def __init__(self, message: Optional[str] = None, code: Optional[Union[int, ErrorCode]] = None):
        self.code = int(code if code is not None else self.default_code)
        if message is None:
            message = _DEFAULT_MESSAGES.get(self.code, "unknown error")
        self.message = message
        super().__init__(message)

    @classmethod
    def from_code(cls, code: ErrorCode) -> "SDKError":
        """Create an error carrying the default message for ``code``."""
        return cls(_DEFAULT_MESSAGES[code], code=code)

    def join(self, cause: Optional[BaseException]) -> "SDKError":
        """
        Return a copy of this error with ``cause`` appended to the message.

        The copy keeps the class of this error so callers can still tell a
        transport failure from an application error after it has been wrapped
        with an operation-specific code.
        """
        if cause is None:
            return self
        cause_text = cause.message if isinstance(cause, SDKError) else str(cause)
        joined = self.__class__(f"{self.message} ({cause_text})", code=self.code)
        joined.__cause__ = cause
        return joined

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}

    def __str__(self) -> str:
        return f"error code: {self.code}, msg: {self.message}"


class TransportError(SDKError):
    """Raised when the gateway cannot be reached or answers without a usable body."""
    default_code = ErrorCode.TRANSPORT


class ProtocolError(SDKError):
    """Raised when the gateway response is not valid JSON-RPC."""
    default_code = ErrorCode.JSON_UNMARSHAL


class RPCError(SDKError):
    """
    Raised when the gateway returns a well-formed response with a nonzero
    error code. The gateway's code and message are kept verbatim.
    """
    pass


class InvalidArgumentError(SDKError):
    """Raised when caller-supplied arguments are malformed."""
    default_code = ErrorCode.PARAMS


class AccountNotFoundError(SDKError):
    """Raised when an address is unknown to the local account provider."""
    default_code = ErrorCode.ACCOUNT_FIND


class SigningError(SDKError):
    """Raised when the account provider fails to sign a transaction."""
    default_code = ErrorCode.SIGN_TX


class EncodingError(SDKError):
    """Raised when a signed transaction cannot be encoded."""
    default_code = ErrorCode.ENCODE_TX


class MethodNotFoundError(SDKError):
    """Raised when a dispatched method name is unknown."""
    default_code = ErrorCode.METHOD
