"""
Signature verification contract.

A verifier answers one question: was ``signature`` produced over ``payload``
by the private key behind ``wallet_address``? The payload is always the
canonical challenge message built by challenge_message(), which binds both
the wallet address and the nonce so a signature cannot be replayed against
another challenge or another wallet.
"""

from abc import ABC, abstractmethod

from wallet_auth.core.config import settings


def challenge_message(wallet_address: str, nonce: str, app_name: str | None = None) -> str:
    """
    Build the exact text a wallet must sign for a challenge.

    Example:
        DOB Validator authentication
        wallet: GAA5LJQ5...
        nonce: 3f1c...
    """
    name = app_name or settings.PROJECT_NAME
    return f"{name} authentication\nwallet: {wallet_address}\nnonce: {nonce}"


class SignatureVerifier(ABC):
    """
    Abstract capability for wallet signature verification.

    Implementations must be deterministic and side-effect free, and must
    return False (never raise) for malformed addresses or signatures.
    """

    @abstractmethod
    def verify(self, wallet_address: str, payload: str, signature: str) -> bool:
        """
        Verify a wallet signature.

        Args:
            wallet_address: Wallet address claiming ownership
            payload: Canonical challenge message that was signed
            signature: Encoded signature as sent by the client

        Returns:
            True if signature is valid, False otherwise
        """


class TransactionVerifier(ABC):
    """
    Wallets that cannot sign arbitrary messages sign a challenge transaction
    instead: a never-submitted transaction from the wallet's account whose
    data entry carries the challenge nonce.
    """

    @abstractmethod
    def is_transaction(self, value: str) -> bool:
        """True if ``value`` is an encoded transaction rather than a bare signature."""

    @abstractmethod
    def verify_transaction(self, wallet_address: str, nonce: str, signed_transaction: str) -> bool:
        """
        Verify a signed challenge transaction.

        Returns:
            True if the transaction comes from wallet_address, carries nonce
            and is signed by the wallet's key, False otherwise
        """
