"""
Configuration for the BaaS SDK.

Values come from constructor arguments, ``BAAS_*`` environment variables,
``auth.json`` (gateway credential) and ``passwd.json`` (accounts to unlock
at startup).
"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from .models import AuthCredential

logger = logging.getLogger(__name__)

DEFAULT_XHOST = "rpc-baas-blockchain.xunlei.com"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class SDKConfig(BaseModel):
    """SDK settings."""
    keystore: str = "./keystore"
    unlock_accounts: Dict[str, str] = Field(default_factory=dict)
    retry: int = 2
    rpc_protocol: str = "https"
    xhost: str = DEFAULT_XHOST
    namespace: str = "tcapi"
    chain_id: int = 0
    get_gas_price: bool = False
    get_fee: bool = False
    dns_cache_update_interval: float = 60
    poll_interval: float = 30
    connect_timeout: float = 15
    read_timeout: float = 120
    verify_ssl: bool = True
    auth: Optional[AuthCredential] = None

    @field_validator("retry")
    @classmethod
    def _check_retry(cls, value: int) -> int:
        if value < 1:
            raise ValueError("retry must be at least 1")
        return value

    @field_validator("rpc_protocol")
    @classmethod
    def _check_protocol(cls, value: str) -> str:
        value = value.lower()
        if value not in ("http", "https"):
            raise ValueError(f"rpc_protocol must be http or https, got {value}")
        return value

    @property
    def auth_enabled(self) -> bool:
        return self.auth is not None and self.auth.is_complete

    @classmethod
    def from_env(cls, **overrides) -> "SDKConfig":
        """
        Build a config from ``BAAS_*`` environment variables.

        ``BAAS_AUTH_FILE`` and ``BAAS_PASSWD_FILE`` point to ``auth.json`` and
        ``passwd.json``. Keyword arguments take precedence over the environment.
        """
        env = os.environ
        values: Dict[str, object] = {}
        simple = {
            "BAAS_KEYSTORE": "keystore",
            "BAAS_RPC_PROTOCOL": "rpc_protocol",
            "BAAS_XHOST": "xhost",
            "BAAS_NAMESPACE": "namespace",
        }
        for var, name in simple.items():
            if env.get(var):
                values[name] = env[var]
        numeric = {
            "BAAS_RETRY": ("retry", int),
            "BAAS_CHAIN_ID": ("chain_id", int),
            "BAAS_DNS_CACHE_UPDATE_INTERVAL": ("dns_cache_update_interval", float),
            "BAAS_POLL_INTERVAL": ("poll_interval", float),
            "BAAS_CONNECT_TIMEOUT": ("connect_timeout", float),
            "BAAS_READ_TIMEOUT": ("read_timeout", float),
        }
        for var, (name, cast) in numeric.items():
            if env.get(var):
                values[name] = cast(env[var])
        flags = {
            "BAAS_GET_GAS_PRICE": "get_gas_price",
            "BAAS_GET_FEE": "get_fee",
            "BAAS_VERIFY_SSL": "verify_ssl",
        }
        for var, name in flags.items():
            if env.get(var):
                values[name] = _env_bool(env[var])
        if env.get("BAAS_AUTH_FILE"):
            values["auth"] = load_auth_file(env["BAAS_AUTH_FILE"])
        if env.get("BAAS_PASSWD_FILE"):
            values["unlock_accounts"] = load_unlock_file(env["BAAS_PASSWD_FILE"])
        values.update(overrides)
        return cls(**values)


def load_auth_file(path: str) -> AuthCredential:
    """
    Load the gateway credential from an ``auth.json`` file.

    The file holds ``{"chainid": ..., "id": ..., "key": ...}``.
    """
    with open(Path(path).expanduser()) as f:
        data = json.load(f)
    credential = AuthCredential.model_validate(data)
    if not credential.is_complete:
        logger.warning(f"Credential in {path} is incomplete, requests will be sent unsigned")
    return credential


def load_unlock_file(path: str) -> Dict[str, str]:
    """Load the ``address -> passphrase`` map from a ``passwd.json`` file."""
    with open(Path(path).expanduser()) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return {str(k): str(v) for k, v in data.items()}
