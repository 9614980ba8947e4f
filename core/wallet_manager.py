import json
import logging
import os
from typing import List, Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_hex
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class WalletProfile(BaseModel):
    """One entry of ``wallets.json``.

    Accepts ``address``/``publicAddress`` and ``privateKey``/``private_key``.
    """

    model_config = ConfigDict(populate_by_name=True)

    address: str = Field(
        validation_alias=AliasChoices("address", "publicAddress"),
    )
    private_key: str = Field(
        validation_alias=AliasChoices("privateKey", "private_key"),
        repr=False,
    )

    def to_record(self) -> dict:
        """Serialise back to the on-disk key names."""
        return {"address": self.address, "privateKey": self.private_key}


class WalletSigner:
    """
    Signing capability for a single EVM wallet.
    Produces EIP-191 personal-message signatures, the format
    ``ethers.Wallet.signMessage`` returns.
    """

    def __init__(self, private_key: Optional[str] = None):
        """
        Initialize the WalletSigner.

        Args:
            private_key: Hex private key. A fresh random key is generated when omitted.
        """
        self._account = Account.from_key(private_key) if private_key else Account.create()

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def private_key(self) -> str:
        return to_hex(self._account.key)

    def sign_message(self, message: str) -> str:
        """Sign *message* exactly as given and return ``0x``-prefixed hex."""
        signed = self._account.sign_message(encode_defunct(text=message))
        return to_hex(signed.signature)

    def to_profile(self) -> WalletProfile:
        return WalletProfile(address=self.address, private_key=self.private_key)


def load_wallets(filepath: str) -> List[WalletProfile]:
    """Load the wallet list from a JSON array file.

    A missing file yields an empty list.  Malformed JSON or entries
    missing required keys raise.
    """
    if not os.path.exists(filepath):
        logger.info(f"Wallet file not found: {filepath}")
        return []

    with open(filepath, "r", encoding="utf-8") as fh:
        data = json.load(fh)

    if not isinstance(data, list):
        raise ValueError(f"{filepath} must contain a JSON array of wallets")
    return [WalletProfile.model_validate(entry) for entry in data]
