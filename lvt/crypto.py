"""
Ed25519 identities and signatures.

An identity is the 32-byte ed25519 verify key of its owner.
"""
import nacl.signing
import nacl.exceptions


def generate_identity() -> tuple[nacl.signing.SigningKey, bytes]:
    """Generates a signing key and the identity derived from it."""
    signing_key = nacl.signing.SigningKey.generate()
    return signing_key, bytes(signing_key.verify_key)


def identity_of(signing_key: nacl.signing.SigningKey) -> bytes:
    return bytes(signing_key.verify_key)


def sign(signing_key: nacl.signing.SigningKey, data: bytes) -> bytes:
    """Signs byte data, returning the detached 64-byte signature."""
    return signing_key.sign(data).signature


def verify_signature(identity: bytes, signature: bytes, data: bytes) -> bool:
    try:
        nacl.signing.VerifyKey(identity).verify(data, signature)
        return True
    except (nacl.exceptions.BadSignatureError, ValueError, TypeError):
        # Bad signature, or identity/signature of the wrong length
        return False
