"""
Data models for the BaaS SDK.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from web3 import Web3

from .exceptions import SDKError, ErrorCode


UINT64_MAX = 2 ** 64 - 1


def parse_quantity(
    value: Any,
    field: str = "value",
    base: int = 0,
    maximum: Optional[int] = None
) -> Optional[int]:
    """
    Parse a non-negative integer given as int or string.

    Args:
        value: Integer, or string in ``base`` (0 accepts decimal and 0x-hex)
        field: Field name used in error messages
        base: Base used for string values
        maximum: Largest accepted value, if bounded

    Raises:
        ValueError: If the value cannot be parsed or is out of range
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field} err.")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = int(value.strip(), base)
        except ValueError:
            raise ValueError(f"{field} err.")
    else:
        raise ValueError(f"{field} err.")
    if parsed < 0:
        raise ValueError(f"{field} must not be negative")
    if maximum is not None and parsed > maximum:
        raise ValueError(f"{field} err.")
    return parsed


def checksum_address(value: Any, field: str = "address") -> str:
    """Validate a hex address and return its checksummed form."""
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"invalid {field} address")
    return Web3.to_checksum_address(value)


class AuthCredential(BaseModel):
    """Shared-secret credential issued by the BaaS gateway (auth.json)."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    chain_id: str = Field("", validation_alias=AliasChoices("chain_id", "chainid"))
    sdk_id: str = Field("", validation_alias=AliasChoices("sdk_id", "sdkid", "id"))
    secret_key: str = Field("", validation_alias=AliasChoices("secret_key", "key"))

    @field_validator("chain_id", "sdk_id", "secret_key", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def is_complete(self) -> bool:
        return bool(self.chain_id and self.sdk_id and self.secret_key)

    def __repr__(self) -> str:
        # keep the secret out of logs
        return f"AuthCredential(chain_id={self.chain_id!r}, sdk_id={self.sdk_id!r}, secret_key='***')"


class AuthToken(BaseModel):
    """Single-use authentication block attached to an outbound request."""
    chainid: str
    sdkid: str
    rand: str
    sign: str


class RpcErrorBody(BaseModel):
    code: int = 0
    message: str = ""


class RpcRequest(BaseModel):
    """JSON-RPC 2.0 request envelope sent to the gateway."""
    jsonrpc: str = "2.0"
    method: str
    params: List[Any] = Field(default_factory=list)
    id: int = 1
    auth: Optional[AuthToken] = None
    extension: Optional[Dict[str, Any]] = None

    @property
    def verb(self) -> str:
        """Method name without its namespace prefix, used as the URL path."""
        _, _, verb = self.method.partition("_")
        return verb or self.method

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class RpcResponse(BaseModel):
    """
    JSON-RPC response returned by the gateway.

    Extra top-level keys are kept because a few gateway methods answer with a
    ``code``/``msg``/``data`` body instead of ``result``.
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[int] = None
    jsonrpc: str = "2.0"
    result: Any = None
    error: Optional[RpcErrorBody] = None

    @field_validator("error", mode="before")
    @classmethod
    def _zero_error(cls, value: Any) -> Any:
        return value or None

    @property
    def error_code(self) -> int:
        return self.error.code if self.error else 0

    @property
    def error_message(self) -> str:
        return self.error.message if self.error else ""

    @property
    def ok(self) -> bool:
        return self.error_code == 0

    @property
    def extra(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class TxArgs(BaseModel):
    """
    Transaction arguments supplied by a caller.

    Optional fields are filled in place by ``TxArgsResolver`` before the
    transaction is handed to the signer.
    """
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from")
    to: Optional[str] = None
    gas: Optional[int] = None
    gas_price: Optional[int] = Field(None, alias="gasPrice")
    value: Optional[int] = None
    data: bytes = b""
    nonce: Optional[int] = None

    @field_validator("from_", mode="before")
    @classmethod
    def _check_from(cls, value: Any) -> str:
        return checksum_address(value, "from")

    @field_validator("to", mode="before")
    @classmethod
    def _check_to(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return checksum_address(value, "to")

    @field_validator("gas_price", "value", mode="before")
    @classmethod
    def _check_quantity(cls, value: Any, info) -> Optional[int]:
        return parse_quantity(value, info.field_name)

    @field_validator("gas", "nonce", mode="before")
    @classmethod
    def _check_uint64(cls, value: Any, info) -> Optional[int]:
        return parse_quantity(value, info.field_name, maximum=UINT64_MAX)

    @field_validator("data", mode="before")
    @classmethod
    def _check_data(cls, value: Any) -> bytes:
        if value is None or value == "":
            return b""
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, str):
            try:
                return Web3.to_bytes(hexstr=value)
            except ValueError:
                raise ValueError("data err.")
        raise ValueError("data err.")

    @property
    def is_resolved(self) -> bool:
        return None not in (self.gas, self.gas_price, self.value, self.nonce)

    def to_transaction(self, chain_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Build the transaction dict handed to the account provider.

        Raises:
            ValueError: If any optional field is still unresolved
        """
        if not self.is_resolved:
            raise ValueError("transaction arguments are not fully resolved")
        tx: Dict[str, Any] = {
            "nonce": self.nonce,
            "gas": self.gas,
            "gasPrice": self.gas_price,
            "value": self.value,
            "data": self.data,
        }
        if self.to is not None:
            tx["to"] = self.to
        if chain_id:
            tx["chainId"] = chain_id
        return tx


class CallArgs(BaseModel):
    """Arguments of a read-only contract call."""
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from")
    to: str = ""
    data: str = ""

    @field_validator("from_", mode="before")
    @classmethod
    def _check_from(cls, value: Any) -> str:
        return checksum_address(value, "from")


class ContractExtension(BaseModel):
    """Side-channel metadata attached to a contract-invoking submission."""
    callback: str = ""
    prepay_id: str = ""
    service_id: str = ""
    tx_type: str = "contract"
    sign: str = ""
    title: str = ""
    desc: str = ""


class FeeSchedule(BaseModel):
    """Service fee bounds and rate. ``max == 0`` means unbounded."""
    model_config = ConfigDict(frozen=True)

    min: int = 0
    max: int = 0
    rate: int = 0


@dataclass
class SDKResult:
    """Result of a public SDK operation: a value plus a structured error."""
    result: Any = None
    error: Optional[SDKError] = None

    @property
    def ok(self) -> bool:
        return self.error is None or self.error.code == ErrorCode.SUCCESS

    def unwrap(self) -> Any:
        """Return the result or raise the carried error."""
        if not self.ok:
            raise self.error
        return self.result
