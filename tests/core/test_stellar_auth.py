import base64

import pytest
from stellar_sdk import Keypair, Network

from wallet_auth.core.signature_verifier import challenge_message
from wallet_auth.core.stellar_auth import (
    StellarSignatureVerifier,
    StellarTransactionVerifier,
    is_valid_stellar_address,
)

NONCE = "9f" * 32


class TestStellarAddress:
    """Test cases for account address validation"""

    def test_generated_address_is_valid(self, make_wallet):
        address = make_wallet().address
        assert address.startswith("G")
        assert len(address) == 56
        assert is_valid_stellar_address(address)

    def test_bad_checksum_rejected(self, make_wallet):
        address = make_wallet().address
        # change one character inside the key portion
        tampered = address[:10] + ("A" if address[10] != "A" else "B") + address[11:]
        assert not is_valid_stellar_address(tampered)

    def test_secret_seed_is_not_an_account(self):
        seed = Keypair.random().secret
        assert seed.startswith("S")
        assert not is_valid_stellar_address(seed)

    @pytest.mark.parametrize(
        "value",
        ["", "G123", "0x742d35Cc6634C0532925a3b844Bc454e4438f44e", None],
    )
    def test_invalid_inputs(self, value):
        assert not is_valid_stellar_address(value)

    def test_lowercase_rejected(self, make_wallet):
        assert not is_valid_stellar_address(make_wallet().address.lower())

    def test_padded_address_rejected(self, make_wallet):
        assert not is_valid_stellar_address(f" {make_wallet().address}")


class TestStellarSignatureVerifier:
    """Test cases for ED25519 signature verification"""

    @pytest.fixture
    def verifier(self) -> StellarSignatureVerifier:
        return StellarSignatureVerifier()

    def test_valid_base64_signature(self, verifier, make_wallet):
        wallet = make_wallet()
        message = challenge_message(wallet.address, "n1")
        assert verifier.verify(wallet.address, message, wallet.sign(message))

    def test_valid_hex_signature(self, verifier, make_wallet):
        wallet = make_wallet()
        message = challenge_message(wallet.address, "n1")
        assert verifier.verify(wallet.address, message, wallet.sign_hex(message))

    def test_sep53_signature(self, verifier, make_wallet):
        wallet = make_wallet()
        message = challenge_message(wallet.address, "n1")
        assert verifier.verify(wallet.address, message, wallet.sign(message, sep53=True))

    def test_sep53_can_be_disabled(self, make_wallet):
        wallet = make_wallet()
        message = challenge_message(wallet.address, "n1")
        verifier = StellarSignatureVerifier(allow_sep53=False)
        assert not verifier.verify(wallet.address, message, wallet.sign(message, sep53=True))

    def test_signature_for_other_nonce_rejected(self, verifier, make_wallet):
        wallet = make_wallet()
        signature = wallet.sign(challenge_message(wallet.address, "n1"))
        assert not verifier.verify(wallet.address, challenge_message(wallet.address, "n2"), signature)

    def test_signature_from_other_wallet_rejected(self, verifier, make_wallet):
        wallet_a, wallet_b = make_wallet(), make_wallet()
        message = challenge_message(wallet_b.address, "n1")
        assert not verifier.verify(wallet_b.address, message, wallet_a.sign(message))

    @pytest.mark.parametrize(
        "signature",
        ["", "mock_signature_123", "not base64!!", base64.b64encode(b"x" * 10).decode(), "ab" * 64],
    )
    def test_malformed_signature_returns_false(self, verifier, make_wallet, signature):
        wallet = make_wallet()
        assert verifier.verify(wallet.address, challenge_message(wallet.address, "n1"), signature) is False

    def test_malformed_address_returns_false(self, verifier, make_wallet):
        wallet = make_wallet()
        message = challenge_message(wallet.address, "n1")
        assert verifier.verify("GNOTANADDRESS", message, wallet.sign(message)) is False

    def test_message_binds_wallet_and_nonce(self):
        message = challenge_message("GABC", "n1", app_name="DOB Validator")
        assert message == "DOB Validator authentication\nwallet: GABC\nnonce: n1"


class TestStellarTransactionVerifier:
    """Test cases for signed challenge transactions"""

    @pytest.fixture
    def verifier(self) -> StellarTransactionVerifier:
        return StellarTransactionVerifier(Network.TESTNET_NETWORK_PASSPHRASE)

    def test_valid_transaction(self, verifier, make_wallet):
        wallet = make_wallet()
        signed = wallet.sign_transaction(NONCE)
        assert verifier.is_transaction(signed)
        assert verifier.verify_transaction(wallet.address, NONCE, signed)

    def test_source_must_be_the_wallet(self, verifier, make_wallet):
        wallet, other = make_wallet(), make_wallet()
        signed = wallet.sign_transaction(NONCE, source=other.address)
        assert not verifier.verify_transaction(wallet.address, NONCE, signed)
        assert not verifier.verify_transaction(other.address, NONCE, signed)

    def test_nonce_must_match(self, verifier, make_wallet):
        wallet = make_wallet()
        signed = wallet.sign_transaction("aa" * 32)
        assert not verifier.verify_transaction(wallet.address, NONCE, signed)

    def test_truncated_nonce_rejected(self, verifier, make_wallet):
        wallet = make_wallet()
        signed = wallet.sign_transaction(NONCE[:28])
        assert not verifier.verify_transaction(wallet.address, NONCE, signed)

    def test_unsigned_transaction_rejected(self, verifier, make_wallet):
        wallet = make_wallet()
        unsigned = wallet.sign_transaction(NONCE, signed=False)
        assert verifier.is_transaction(unsigned)
        assert not verifier.verify_transaction(wallet.address, NONCE, unsigned)

    def test_signed_by_other_key_rejected(self, verifier, make_wallet):
        wallet, other = make_wallet(), make_wallet()
        # other signs a transaction claiming wallet as source
        signed = other.sign_transaction(NONCE, source=wallet.address)
        assert not verifier.verify_transaction(wallet.address, NONCE, signed)

    def test_other_network_rejected(self, verifier, make_wallet):
        wallet = make_wallet()
        signed = wallet.sign_transaction(NONCE, network_passphrase=Network.PUBLIC_NETWORK_PASSPHRASE)
        assert not verifier.verify_transaction(wallet.address, NONCE, signed)

    def test_other_data_entry_rejected(self, verifier, make_wallet):
        wallet = make_wallet()
        signed = wallet.sign_transaction(NONCE, data_name="something_else")
        assert not verifier.verify_transaction(wallet.address, NONCE, signed)

    def test_bare_signatures_are_not_transactions(self, verifier, make_wallet):
        wallet = make_wallet()
        message = challenge_message(wallet.address, NONCE)
        assert not verifier.is_transaction(wallet.sign(message))
        assert not verifier.is_transaction(wallet.sign_hex(message))

    def test_garbage_returns_false(self, verifier, make_wallet):
        wallet = make_wallet()
        assert verifier.verify_transaction(wallet.address, NONCE, "AAAA" * 40) is False
