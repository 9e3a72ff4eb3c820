"""
Account provider and transaction codec collaborators.

The SDK only needs to find an account, have it sign a transaction and encode
the signed result. Key storage and all cryptography are delegated to
``eth_account``; the protocols below let callers plug in any other provider.
"""
import json
import logging
import os
import stat
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .exceptions import AccountNotFoundError, ErrorCode, SDKError, SigningError
from .models import checksum_address

logger = logging.getLogger(__name__)


class AccountProvider(Protocol):
    """Protocol for local account providers"""

    def find(self, address: str) -> Any:
        """Return the wallet for ``address`` or raise AccountNotFoundError"""
        ...

    def sign_transaction(self, wallet: Any, tx: Dict[str, Any], chain_id: Optional[int]) -> Any:
        """Sign ``tx`` with an unlocked wallet and return the signed object"""
        ...

    def sign_transaction_with_passphrase(
        self, wallet: Any, passphrase: str, tx: Dict[str, Any], chain_id: Optional[int]
    ) -> Any:
        """Sign ``tx`` after unlocking the wallet with ``passphrase`` for this call only"""
        ...

    def new_account(self, passphrase: str) -> str:
        ...

    def accounts(self) -> List[str]:
        ...


class TransactionCodec(Protocol):
    """Protocol for encoding signed transactions"""

    def encode_canonical(self, signed: Any) -> bytes:
        ...

    def hash(self, signed: Any) -> bytes:
        ...


class EthTransactionCodec:
    """Codec for transactions signed by ``eth_account``."""

    def encode_canonical(self, signed: Any) -> bytes:
        return bytes(signed.raw_transaction)

    def hash(self, signed: Any) -> bytes:
        return bytes(signed.hash)


@dataclass
class KeystoreWallet:
    address: str
    path: Optional[Path]
    keyfile: Dict[str, Any] = field(repr=False)


class KeystoreAccountManager:
    """
    Account provider backed by a directory of encrypted keystore files.

    Accounts are unlocked in memory with ``unlock`` (typically at startup
    from ``passwd.json``); locked accounts can still sign with an explicit
    passphrase.
    """

    def __init__(self, keystore_dir: str, kdf: Optional[str] = None, iterations: Optional[int] = None):
        self.keystore_dir = Path(keystore_dir).expanduser()
        self.kdf = kdf
        self.iterations = iterations
        self._lock = threading.RLock()
        self._wallets: Dict[str, KeystoreWallet] = {}
        self._unlocked: Dict[str, LocalAccount] = {}
        self._ensure_dir()
        self.reload()

    def _ensure_dir(self) -> None:
        if not self.keystore_dir.exists():
            self.keystore_dir.mkdir(parents=True, exist_ok=True)
        if os.name == 'posix':
            os.chmod(self.keystore_dir, stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR)  # 0700

    def reload(self) -> int:
        """Scan the keystore directory; returns the number of accounts found."""
        wallets: Dict[str, KeystoreWallet] = {}
        for path in sorted(self.keystore_dir.iterdir()):
            if not path.is_file() or path.name.startswith("."):
                continue
            try:
                keyfile = json.loads(path.read_text())
                address = checksum_address("0x" + keyfile["address"].lower().replace("0x", ""))
            except (OSError, ValueError, KeyError, AttributeError) as e:
                logger.warning(f"Skipping unreadable keystore file {path.name}: {e}")
                continue
            wallets[address] = KeystoreWallet(address=address, path=path, keyfile=keyfile)
        with self._lock:
            self._wallets = wallets
        logger.debug(f"Loaded {len(wallets)} keystore accounts from {self.keystore_dir}")
        return len(wallets)

    def accounts(self) -> List[str]:
        with self._lock:
            return list(self._wallets)

    def find(self, address: str) -> KeystoreWallet:
        try:
            key = checksum_address(address)
        except ValueError as e:
            raise AccountNotFoundError().join(e)
        with self._lock:
            wallet = self._wallets.get(key)
        if wallet is None:
            raise AccountNotFoundError().join(ValueError(f"unknown account {address}"))
        return wallet

    def unlock(self, address: str, passphrase: str) -> None:
        """
        Decrypt an account and keep it unlocked for the process lifetime.

        Raises:
            AccountNotFoundError: If the account is unknown
            SigningError: If the passphrase is wrong
        """
        wallet = self.find(address)
        account = self._decrypt(wallet, passphrase, ErrorCode.SIGN_TX)
        with self._lock:
            self._unlocked[wallet.address] = account
        logger.info(f"Unlocked account {wallet.address}")

    def is_unlocked(self, address: str) -> bool:
        with self._lock:
            return checksum_address(address) in self._unlocked

    def new_account(self, passphrase: str) -> str:
        """Create, store and unlock a new account; returns its address."""
        account = Account.create()
        keyfile = Account.encrypt(account.key, passphrase, kdf=self.kdf, iterations=self.iterations)
        timestamp = time.strftime("%Y-%m-%dT%H-%M-%S", time.gmtime())
        path = self.keystore_dir / f"UTC--{timestamp}--{account.address[2:].lower()}"
        try:
            with open(path, "w") as f:
                json.dump(keyfile, f)
            if os.name == 'posix':
                os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)  # 0600
        except OSError as e:
            raise SDKError.from_code(ErrorCode.NEW_ACCOUNT).join(e)
        with self._lock:
            self._wallets[account.address] = KeystoreWallet(account.address, path, keyfile)
            self._unlocked[account.address] = account
        logger.info(f"Created account {account.address}")
        return account.address

    def sign_transaction(self, wallet: KeystoreWallet, tx: Dict[str, Any], chain_id: Optional[int]) -> Any:
        with self._lock:
            account = self._unlocked.get(wallet.address)
        if account is None:
            raise SigningError(f"account {wallet.address} is locked", code=ErrorCode.SIGN_TX)
        return self._sign(account, tx, chain_id, ErrorCode.SIGN_TX)

    def sign_transaction_with_passphrase(
        self, wallet: KeystoreWallet, passphrase: str, tx: Dict[str, Any], chain_id: Optional[int]
    ) -> Any:
        account = self._decrypt(wallet, passphrase, ErrorCode.SIGN_TX_WITH_PASSPHRASE)
        return self._sign(account, tx, chain_id, ErrorCode.SIGN_TX_WITH_PASSPHRASE)

    @staticmethod
    def _decrypt(wallet: KeystoreWallet, passphrase: str, code: ErrorCode) -> LocalAccount:
        try:
            key = Account.decrypt(wallet.keyfile, passphrase)
        except ValueError as e:
            raise SigningError.from_code(code).join(e)
        return Account.from_key(key)

    @staticmethod
    def _sign(account: LocalAccount, tx: Dict[str, Any], chain_id: Optional[int], code: ErrorCode) -> Any:
        tx = dict(tx)
        if chain_id and "chainId" not in tx:
            tx["chainId"] = chain_id
        try:
            return account.sign_transaction(tx)
        except (TypeError, ValueError) as e:
            raise SigningError.from_code(code).join(e)
