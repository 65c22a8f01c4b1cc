import logging

from pytezos import Key

logger = logging.getLogger(__name__)


class TezosSigner:
    """Account key restored from an edsk secret key"""

    def __init__(self, secret_key: str):
        if not secret_key:
            raise ValueError("secret key is required")

        try:
            self.key = Key.from_encoded_key(secret_key)
        except Exception as e:
            raise ValueError(f"Invalid private key format: {e}") from e

        if not self.key.secret_exponent:
            raise ValueError("Invalid private key format: a secret key is required, not a public key")

        self.public_key = self.key.public_key()
        self.public_key_hash = self.key.public_key_hash()
        logger.info(f"Tezos account initialized: {self.public_key_hash}")
