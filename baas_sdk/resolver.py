"""
Resolution of unset transaction fields.
"""
import logging
from typing import Optional

from web3 import Web3

from .chain import ChainClient
from .fees import ChainStateCache
from .models import TxArgs

logger = logging.getLogger(__name__)

DEFAULT_GAS_PRICE = 10 ** 11


class TxArgsResolver:
    """
    Fills gasPrice, value, gas and nonce on a ``TxArgs`` in that order.

    Fields set by the caller are left untouched. Callers resolving a nonce
    must hold the sender's ``AddressNonceLock`` until the signed transaction
    has been submitted.
    """

    def __init__(
        self,
        chain: ChainClient,
        state: Optional[ChainStateCache] = None,
        use_polled_gas_price: bool = False,
        default_gas_price: int = DEFAULT_GAS_PRICE
    ):
        self.chain = chain
        self.state = state
        self.use_polled_gas_price = use_polled_gas_price
        self.default_gas_price = default_gas_price

    def default_price(self) -> int:
        if self.use_polled_gas_price and self.state is not None:
            polled = self.state.gas_price
            if polled is not None:
                return polled
        return self.default_gas_price

    def resolve(self, args: TxArgs) -> TxArgs:
        """
        Populate missing fields of ``args`` in place.

        Returns:
            The same ``args`` instance

        Raises:
            SDKError: The error of the first failing RPC, unchanged
        """
        if args.gas_price is None:
            args.gas_price = self.default_price()
        if args.value is None:
            args.value = 0
        if args.gas is None:
            args.gas = self.chain.estimate_gas(
                args.from_, args.to, Web3.to_hex(args.data), args.value
            )
            logger.debug(f"Estimated gas for {args.from_}: {args.gas}")
        if args.nonce is None:
            args.nonce = self.chain.get_transaction_count(args.from_, "pending")
            logger.debug(f"Resolved nonce for {args.from_}: {args.nonce}")
        return args
