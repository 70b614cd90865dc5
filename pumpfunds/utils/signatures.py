"""Transaction signature generation for replicated trades."""
import secrets

from pumpfunds.utils.constants import SIGNATURE_ALPHABET, SIGNATURE_LENGTH


def generate_mock_signature(length: int = SIGNATURE_LENGTH) -> str:
    """
    Generate an opaque random transaction signature.

    Stands in for the on-chain transaction id until replication submits
    real transactions. Uniqueness is also enforced by the ledger column.
    """
    return ''.join(secrets.choice(SIGNATURE_ALPHABET) for _ in range(length))
