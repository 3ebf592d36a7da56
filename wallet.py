import binascii
import hashlib

import ecdsa

from voting_errors import InvalidArgument

# Principals are the hex encoding of a raw SECP256k1 verifying key.
CURVE = ecdsa.SECP256k1


def generate_key_pair():
    # Generate SECP256k1 keys (Bitcoin standard)
    sk = ecdsa.SigningKey.generate(curve=CURVE)
    pk = sk.get_verifying_key()
    return (
        binascii.hexlify(sk.to_string()).decode(),
        binascii.hexlify(pk.to_string()).decode()
    )


def _signing_key(private_key_hex):
    try:
        return ecdsa.SigningKey.from_string(binascii.unhexlify(private_key_hex), curve=CURVE)
    except (ValueError, TypeError, ecdsa.MalformedPointError) as e:
        raise InvalidArgument(f"malformed private key: {e}") from e


def public_key_from_private(private_key_hex):
    pk = _signing_key(private_key_hex).get_verifying_key()
    return binascii.hexlify(pk.to_string()).decode()


def sign_message(private_key_hex, message):
    signature = _signing_key(private_key_hex).sign(message.encode(), hashfunc=hashlib.sha256)
    return binascii.hexlify(signature).decode()


def verify_signature(public_key_hex, message, signature_hex):
    try:
        pk_bytes = binascii.unhexlify(public_key_hex)
        sig_bytes = binascii.unhexlify(signature_hex)
        pk = ecdsa.VerifyingKey.from_string(pk_bytes, curve=CURVE)
        return pk.verify(sig_bytes, message.encode(), hashfunc=hashlib.sha256)
    except (ValueError, TypeError, ecdsa.BadSignatureError, ecdsa.MalformedPointError):
        return False
