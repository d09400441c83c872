from .encryption import decrypt_secret, encrypt_secret, generate_encryption_key

__all__ = ["decrypt_secret", "encrypt_secret", "generate_encryption_key"]
