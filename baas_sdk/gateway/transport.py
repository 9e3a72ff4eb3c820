"""
Transport layer for the BaaS gateway.

This module provides the JSON-RPC over HTTP transport used by the SDK. The
transport builds the request envelope, attaches the auth token, posts it to
the address currently cached for the gateway hostname, and retries transport
failures after forcing an endpoint refresh.

Retried submissions resend the same raw transaction. This is only safe
because the gateway de-duplicates submissions by transaction hash; the
transport cannot enforce that itself.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter

from ..exceptions import ProtocolError, TransportError
from ..models import RpcRequest, RpcResponse
from .auth import AuthSigner
from .endpoint import EndpointCache, is_ipv4
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 15
DEFAULT_READ_TIMEOUT = 120
DEFAULT_RETRY = 2


class GatewayTransport(ABC):
    """
    Abstract base class for gateway transport implementations.

    Implementations return the parsed response for any well-formed reply,
    including replies carrying an application error code.
    """

    @abstractmethod
    def call(
        self,
        method: str,
        params: Sequence[Any],
        auth_params: Optional[Sequence[str]] = None,
        extension: Optional[Dict[str, Any]] = None,
        from_hint: Optional[str] = None
    ) -> RpcResponse:
        """
        Send a JSON-RPC call to the gateway.

        Args:
            method: Namespaced method name, e.g. ``tcapi_getBalance``
            params: Positional parameters sent in the envelope
            auth_params: Parameters covered by the auth signature
                (defaults to ``params``)
            extension: Optional extension object for contract submissions
            from_hint: Optional sender address used as a routing hint

        Returns:
            Parsed gateway response

        Raises:
            TransportError: If every attempt failed at the transport level
            ProtocolError: If the response body is not valid JSON-RPC
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close any open connections or resources."""
        pass


class PinnedHostAdapter(HTTPAdapter):
    """
    HTTPS adapter that checks certificates against the logical hostname.

    The URL carries an IP literal, so SNI and hostname verification would
    otherwise use the IP and fail against the gateway certificate.
    """

    def __init__(self, hostname: str, **kwargs):
        self.hostname = hostname
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["server_hostname"] = self.hostname
        kwargs["assert_hostname"] = self.hostname
        super().init_poolmanager(*args, **kwargs)


def stringify_params(params: Sequence[Any]) -> List[str]:
    """Render parameters as the strings covered by the auth signature."""
    rendered = []
    for param in params:
        if isinstance(param, str):
            rendered.append(param)
        else:
            rendered.append(json.dumps(param, separators=(",", ":"), sort_keys=True))
    return rendered


class HTTPTransport(GatewayTransport):
    """JSON-RPC over HTTP(S) transport with endpoint failover."""

    def __init__(
        self,
        endpoint_cache: EndpointCache,
        signer: Optional[AuthSigner] = None,
        protocol: str = "https",
        retry_policy: Optional[RetryPolicy] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        verify_ssl: bool = True,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        if protocol not in ("http", "https"):
            raise ValueError(f"Unsupported gateway protocol: {protocol}")
        self.endpoint_cache = endpoint_cache
        self.hostname = endpoint_cache.hostname
        self.signer = signer or AuthSigner()
        self.protocol = protocol
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=DEFAULT_RETRY)
        self.timeout = (connect_timeout, read_timeout)
        self.verify_ssl = verify_ssl
        self.logger = logger or logging.getLogger(__name__)

        self.session = session or requests.Session()
        if session is None:
            if protocol == "https" and verify_ssl and not is_ipv4(self.hostname):
                adapter = PinnedHostAdapter(self.hostname, max_retries=0, pool_maxsize=200)
            else:
                adapter = HTTPAdapter(max_retries=0, pool_maxsize=200)
            self.session.mount(f"{protocol}://", adapter)

    def build_request(
        self,
        method: str,
        params: Sequence[Any],
        auth_params: Optional[Sequence[str]] = None,
        extension: Optional[Dict[str, Any]] = None
    ) -> RpcRequest:
        """Build the envelope for a call, signing ``auth_params``."""
        if auth_params is None:
            auth_params = stringify_params(params)
        return RpcRequest(
            method=method,
            params=list(params),
            auth=self.signer.sign(auth_params),
            extension=extension,
        )

    def url_for(self, verb: str, address: Optional[str] = None) -> str:
        return f"{self.protocol}://{address or self.endpoint_cache.get_address()}/{verb}"

    def call(
        self,
        method: str,
        params: Sequence[Any],
        auth_params: Optional[Sequence[str]] = None,
        extension: Optional[Dict[str, Any]] = None,
        from_hint: Optional[str] = None
    ) -> RpcResponse:
        request = self.build_request(method, params, auth_params, extension)
        payload = request.to_payload()
        data = json.dumps(payload).encode("utf-8")
        self.logger.debug(f"rpc call {method}: {self._sanitize_payload(payload)}")

        def _refresh(attempt: int, error: BaseException) -> None:
            self.endpoint_cache.force_refresh()

        try:
            body = self.retry_policy.run(
                lambda attempt: self._post(request.verb, data, from_hint),
                on_failure=_refresh,
            )
        except TransportError as e:
            self.logger.error(f"rpc call {method} failed after {self.retry_policy.max_attempts} attempts: {e.message}")
            raise

        response = self.parse_response(body)
        if not response.ok:
            self.logger.info(f"rpc call {method} returned error {response.error_code}: {response.error_message}")
        return response

    def _post(self, verb: str, data: bytes, from_hint: Optional[str]) -> bytes:
        url = self.url_for(verb)
        query = {"from": from_hint} if from_hint else None
        headers = {
            "Host": self.hostname,
            "Content-Type": "application/json",
        }
        try:
            response = self.session.post(
                url,
                data=data,
                params=query,
                headers=headers,
                timeout=self.timeout,
                verify=self.verify_ssl,
            )
        except requests.RequestException as e:
            raise TransportError(f"POST {url} failed: {e}")

        if response.status_code != 200:
            raise TransportError(f"POST {url} returned status {response.status_code}")
        if not response.content:
            raise TransportError(f"POST {url} returned an empty body")
        return response.content

    @staticmethod
    def parse_response(body: bytes) -> RpcResponse:
        """
        Parse a gateway reply.

        Raises:
            ProtocolError: If the body is not a JSON object or does not match
                the response schema
        """
        try:
            decoded = json.loads(body)
        except ValueError as e:
            raise ProtocolError(f"json unmarshal err ({e})")
        if not isinstance(decoded, dict):
            raise ProtocolError(f"json unmarshal err (expected object, got {type(decoded).__name__})")
        try:
            return RpcResponse.model_validate(decoded)
        except ValidationError as e:
            raise ProtocolError(f"json unmarshal err ({e.error_count()} invalid fields)")

    @staticmethod
    def _sanitize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
        """Redact the auth signature for logging."""
        result = dict(payload)
        if isinstance(result.get("auth"), dict):
            auth = dict(result["auth"])
            auth["sign"] = "[REDACTED]"
            result["auth"] = auth
        return result

    def close(self) -> None:
        self.session.close()
