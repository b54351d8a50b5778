"""RSA key pair generation and serialization for SSH key provisioning."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from keyprov_infra.errors import EncodingError, GenerationError

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_STRENGTH_BITS: int = 4096
MIN_STRENGTH_BITS: int = 2048
_STRENGTH_STEP_BITS: int = 1024
_PUBLIC_EXPONENT: int = 65537


@dataclass(frozen=True)
class KeyPair:
    """An RSA private key, its public counterpart and the modulus size."""

    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey
    strength_bits: int


def _validate_strength(strength_bits: int) -> None:
    if isinstance(strength_bits, bool) or not isinstance(strength_bits, int):
        raise GenerationError(f"strength must be an integer, got {strength_bits!r}")
    if strength_bits < MIN_STRENGTH_BITS:
        raise GenerationError(
            f"strength {strength_bits} is below the minimum of {MIN_STRENGTH_BITS} bits"
        )
    if strength_bits % _STRENGTH_STEP_BITS:
        raise GenerationError(
            f"strength {strength_bits} is not a multiple of {_STRENGTH_STEP_BITS} bits"
        )


def _check_key_consistency(private_key: rsa.RSAPrivateKey, strength_bits: int) -> None:
    """Verify the numeric components of ``private_key`` agree with each other."""
    numbers = private_key.private_numbers()
    public = numbers.public_numbers
    p, q, d = numbers.p, numbers.q, numbers.d

    if p * q != public.n:
        raise GenerationError("modulus is not the product of its primes")
    if public.n.bit_length() != strength_bits:
        raise GenerationError(
            f"modulus is {public.n.bit_length()} bits, expected {strength_bits}"
        )
    lambda_n = math.lcm(p - 1, q - 1)
    if (public.e * d) % lambda_n != 1:
        raise GenerationError("private exponent does not invert the public exponent")
    if numbers.dmp1 != d % (p - 1) or numbers.dmq1 != d % (q - 1):
        raise GenerationError("CRT exponents are inconsistent")
    if (numbers.iqmp * q) % p != 1:
        raise GenerationError("CRT coefficient is inconsistent")


def generate_key_pair(strength_bits: int = DEFAULT_STRENGTH_BITS) -> KeyPair:
    """Generate and validate a fresh RSA key pair.

    Args:
        strength_bits: Modulus size; at least 2048 and a multiple of 1024.

    Returns:
        A validated :class:`KeyPair`.

    Raises:
        GenerationError: On an unsupported size, a backend failure, or a key
            whose components do not check out. Never retried.
    """
    _validate_strength(strength_bits)
    try:
        private_key = rsa.generate_private_key(
            public_exponent=_PUBLIC_EXPONENT, key_size=strength_bits
        )
    except (ValueError, UnsupportedAlgorithm, OSError) as exc:
        raise GenerationError(f"RSA key generation failed: {exc}") from exc

    _check_key_consistency(private_key, strength_bits)
    logger.debug("key_pair_generated", extra={"strength_bits": strength_bits})
    return KeyPair(
        private_key=private_key,
        public_key=private_key.public_key(),
        strength_bits=strength_bits,
    )


def encode_private_key(key_pair: KeyPair) -> bytes:
    """Serialize the private key as an unencrypted ``RSA PRIVATE KEY`` PEM block."""
    return key_pair.private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def encode_public_key(key_pair: KeyPair) -> bytes:
    """Serialize the public key as an OpenSSH authorized-key line.

    Raises:
        EncodingError: If the public key cannot be expressed in OpenSSH form.
    """
    if not isinstance(key_pair.public_key, rsa.RSAPublicKey):
        raise EncodingError(
            f"expected an RSA public key, got {type(key_pair.public_key).__name__}"
        )
    try:
        line = key_pair.public_key.public_bytes(
            encoding=serialization.Encoding.OpenSSH,
            format=serialization.PublicFormat.OpenSSH,
        )
    except (ValueError, TypeError) as exc:
        raise EncodingError(f"public key is not encodable as OpenSSH: {exc}") from exc
    if not line.startswith(b"ssh-rsa "):
        raise EncodingError("public key did not encode to an ssh-rsa line")
    return line + b"\n"


def load_private_key(pem: bytes) -> rsa.RSAPrivateKey:
    """Parse an unencrypted PEM private key produced by :func:`encode_private_key`.

    Raises:
        EncodingError: If ``pem`` is malformed or not an RSA key.
    """
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise EncodingError(f"invalid private key PEM: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise EncodingError(f"expected an RSA private key, got {type(key).__name__}")
    return key
