"""
Stellar Wallet Authentication Utilities

This module handles Stellar-specific cryptographic operations for wallet authentication.

Authentication Flow:
1. Backend issues a challenge (nonce) for an account address
2. Frontend signs the challenge with the wallet (Freighter)
3. Frontend sends: address, nonce, signature
4. Backend verifies the signature with one of the verifiers below

A Stellar account address (G...) embeds the account's ED25519 public key, so no
separate key is sent. Address decoding and signature checks go through
stellar_sdk's Keypair and StrKey.

Accepted proofs:
- raw: an ED25519 signature over the UTF-8 challenge message
- SEP-53: Freighter's signMessage, a signature over
  sha256("Stellar Signed Message:\\n" + message)
- signed transaction: Freighter's signTransaction over a transaction from the
  wallet's account with a manageData "auth_challenge" entry set to the nonce
"""

import base64
import binascii
import logging
import secrets

from stellar_sdk import Keypair, ManageData, StrKey, TransactionEnvelope
from stellar_sdk.exceptions import BadSignatureError

from wallet_auth.core.config import settings
from wallet_auth.core.signature_verifier import SignatureVerifier, TransactionVerifier

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 64
AUTH_CHALLENGE_DATA_NAME = "auth_challenge"


def is_valid_stellar_address(address: str) -> bool:
    """True for a well-formed account address (G...), checksum included."""
    if not isinstance(address, str):
        return False
    return StrKey.is_valid_ed25519_public_key(address)


def _decode_hex(value: str) -> bytes:
    """Helper: Decode hex string to bytes."""
    return binascii.unhexlify(value.encode())


def _decode_base64(value: str) -> bytes:
    """Helper: Decode base64 string to bytes."""
    return base64.b64decode(value, validate=True)


def _decode_hex_or_base64(value: str) -> bytes:
    """
    Helper: Decode hex or base64 string to bytes.

    Wallets may send signatures in either format, so we support both.
    """
    value = value.strip()
    try:
        return _decode_hex(value)
    except (binascii.Error, ValueError):
        try:
            return _decode_base64(value)
        except (binascii.Error, ValueError):
            raise ValueError("Value must be hex or base64 encoded")


class StellarSignatureVerifier(SignatureVerifier):
    """
    Stellar wallet authentication using ED25519 signatures.

    Verifies wallet ownership via signature verification over the challenge message.
    """

    def __init__(self, allow_sep53: bool = True):
        self.allow_sep53 = allow_sep53

    def verify(self, wallet_address: str, payload: str, signature: str) -> bool:
        """
        Verify a Stellar wallet signature.

        Args:
            wallet_address: Stellar account address (G...)
            payload: Challenge message that was signed
            signature: ED25519 signature (hex or base64 encoded)

        Returns:
            True if signature is valid, False otherwise
        """
        if not is_valid_stellar_address(wallet_address):
            return False
        try:
            keypair = Keypair.from_public_key(wallet_address)
            signature_bytes = _decode_hex_or_base64(signature)
            message_bytes = payload.encode("utf-8")
        except (ValueError, AttributeError, TypeError) as exc:
            logger.info("Rejecting malformed signature input: %s", exc)
            return False

        if len(signature_bytes) != SIGNATURE_LENGTH:
            return False

        try:
            keypair.verify(message_bytes, signature_bytes)
            return True
        except BadSignatureError:
            pass

        if not self.allow_sep53:
            return False
        try:
            keypair.verify_message(message_bytes, signature_bytes)
            return True
        except BadSignatureError:
            return False


class StellarTransactionVerifier(TransactionVerifier):
    """
    Verify challenge transactions signed with Freighter's signTransaction.

    The transaction is never submitted. It proves ownership when:
    1. its source account is the wallet
    2. a manageData operation named "auth_challenge" carries the exact nonce
    3. one of its signatures verifies against the wallet's key over the
       transaction hash, which is bound to the configured network
    """

    def __init__(self, network_passphrase: str | None = None):
        self.network_passphrase = network_passphrase or settings.STELLAR_NETWORK_PASSPHRASE

    def _parse(self, value: str) -> TransactionEnvelope | None:
        try:
            return TransactionEnvelope.from_xdr(value.strip(), self.network_passphrase)
        except Exception:
            return None

    def is_transaction(self, value: str) -> bool:
        if not isinstance(value, str) or len(value) <= SIGNATURE_LENGTH * 2:
            return False
        return self._parse(value) is not None

    def verify_transaction(self, wallet_address: str, nonce: str, signed_transaction: str) -> bool:
        if not is_valid_stellar_address(wallet_address):
            return False
        envelope = self._parse(signed_transaction or "")
        if envelope is None:
            logger.info("Rejecting undecodable challenge transaction")
            return False

        transaction = envelope.transaction
        if transaction.source.account_id != wallet_address:
            logger.info("Challenge transaction source does not match the wallet")
            return False

        challenge_values = [
            operation.data_value
            for operation in transaction.operations
            if isinstance(operation, ManageData) and operation.data_name == AUTH_CHALLENGE_DATA_NAME
        ]
        if len(challenge_values) != 1 or challenge_values[0] is None:
            logger.info("Challenge transaction has no single auth_challenge entry")
            return False
        if not secrets.compare_digest(challenge_values[0], nonce.encode("utf-8")):
            return False

        keypair = Keypair.from_public_key(wallet_address)
        transaction_hash = envelope.hash()
        for decorated in envelope.signatures:
            try:
                keypair.verify(transaction_hash, decorated.signature)
                return True
            except BadSignatureError:
                continue
        logger.info("Challenge transaction is not signed by the wallet")
        return False
