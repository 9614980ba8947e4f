import pytest
import json
from eth_account import Account
from eth_account.messages import encode_defunct
from pydantic import ValidationError
from core.wallet_manager import WalletProfile, WalletSigner, load_wallets

# Well-known throwaway key (hardhat account #0)
TEST_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class TestWalletSigner:
    def test_address_from_key(self):
        assert WalletSigner(TEST_KEY).address == TEST_ADDRESS

    def test_private_key_round_trip(self):
        assert WalletSigner(TEST_KEY).private_key.lower() == TEST_KEY

    def test_generates_fresh_key(self):
        a, b = WalletSigner(), WalletSigner()
        assert a.address != b.address
        assert a.private_key.startswith("0x")

    def test_signature_recovers_address(self):
        signer = WalletSigner(TEST_KEY)
        message = f"Node activation request for {signer.address} at 1700000000000"
        signature = signer.sign_message(message)

        assert signature.startswith("0x")
        assert len(signature) == 132
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
        assert recovered == signer.address

    def test_signature_depends_on_message(self):
        signer = WalletSigner(TEST_KEY)
        assert signer.sign_message("a") != signer.sign_message("b")

    def test_to_profile(self):
        profile = WalletSigner(TEST_KEY).to_profile()
        assert profile.address == TEST_ADDRESS
        assert profile.to_record() == {"address": TEST_ADDRESS, "privateKey": profile.private_key}


class TestWalletProfile:
    def test_accepts_original_key_names(self):
        profile = WalletProfile.model_validate({"address": "0xabc", "privateKey": "0x1"})
        assert profile.private_key == "0x1"

    def test_accepts_aliases(self):
        profile = WalletProfile.model_validate({"publicAddress": "0xabc", "private_key": "0x1"})
        assert profile.address == "0xabc"

    def test_private_key_hidden_from_repr(self):
        assert "0xdeadbeef" not in repr(WalletProfile(address="0xabc", private_key="0xdeadbeef"))

    def test_missing_key_fails(self):
        with pytest.raises(ValidationError):
            WalletProfile.model_validate({"address": "0xabc"})


class TestLoadWallets:
    def test_missing_file_is_empty(self, tmp_path):
        assert load_wallets(str(tmp_path / "wallets.json")) == []

    def test_loads_entries_in_order(self, tmp_path):
        path = tmp_path / "wallets.json"
        path.write_text(json.dumps([
            {"address": "0x1", "privateKey": "0xa"},
            {"address": "0x2", "privateKey": "0xb"},
        ]), encoding="utf-8")
        wallets = load_wallets(str(path))
        assert [w.address for w in wallets] == ["0x1", "0x2"]

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "wallets.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            load_wallets(str(path))

    def test_non_array_raises(self, tmp_path):
        path = tmp_path / "wallets.json"
        path.write_text('{"address": "0x1"}', encoding="utf-8")
        with pytest.raises(ValueError):
            load_wallets(str(path))
