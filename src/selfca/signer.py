"""
Key generation, serial number assignment and certificate signing.
"""

from __future__ import annotations

import secrets

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from selfca.builder import build_template
from selfca.errors import KeyGenerationError, SerialNumberError, SigningError, SigningMaterialError
from selfca.model import IssuanceRequest, IssuedCertificate, LeafRequest, SigningMaterial
from selfca.util.logging import getLogger

logger = getLogger(__name__)

SERIAL_NUMBER_BITS = 128

PUBLIC_EXPONENT = 65537


def generate_serial_number() -> int:
    """Draw a cryptographically random serial number in ``[1, 2**128)``."""
    # X.509 serial numbers must be positive
    try:
        return secrets.randbelow((1 << SERIAL_NUMBER_BITS) - 1) + 1
    except Exception as e:
        raise SerialNumberError(f"Failed to draw serial number: {e}") from e


def generate_private_key(key_bits: int) -> rsa.RSAPrivateKey:
    try:
        return rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_bits)
    except Exception as e:
        raise KeyGenerationError(f"Failed to generate {key_bits}-bit RSA key: {e}") from e


def fingerprint(certificate: x509.Certificate) -> str:
    """SHA-256 fingerprint of the certificate's DER encoding, as lowercase hex."""
    return certificate.fingerprint(hashes.SHA256()).hex()


def _public_key_der(key: rsa.RSAPublicKey) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.DER, format=serialization.PublicFormat.SubjectPublicKeyInfo
    )


def _check_signing_material(material: SigningMaterial) -> None:
    if material is None or material.key is None or material.certificate is None:
        raise SigningMaterialError("CA key and certificate are required to sign a leaf certificate")

    if not isinstance(material.key, rsa.RSAPrivateKey):
        raise SigningMaterialError(f"Unsupported CA key type {type(material.key).__name__}")

    ca_public_key = material.certificate.public_key()
    if not isinstance(ca_public_key, rsa.RSAPublicKey) or _public_key_der(ca_public_key) != _public_key_der(
        material.key.public_key()
    ):
        raise SigningMaterialError("CA private key does not match the CA certificate")

    try:
        constraints = material.certificate.extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        constraints = None
    if constraints is None or not constraints.ca:
        raise SigningMaterialError("Signing certificate is not a certificate authority")


def issue_certificate(request: IssuanceRequest) -> IssuedCertificate:
    """
    Generate a key pair and a signed certificate for the request.

    CA requests are self-signed with their own new key. Leaf requests get their
    own new key and are signed with the request's signing material.

    Raises:
        InvalidRequestError: If the request cannot produce a valid template
        SigningMaterialError: If leaf signing material is missing or unusable
        KeyGenerationError: If the RSA key pair cannot be generated
        SerialNumberError: If the serial number cannot be drawn
        SigningError: If the signature cannot be produced
    """
    if isinstance(request, LeafRequest):
        _check_signing_material(request.signing_material)

    serial_number = generate_serial_number()
    template = build_template(request, serial_number)

    logger.debug(
        "generating_key",
        is_ca=template.is_ca,
        key_bits=request.key_bits,
        common_name=template.common_name,
    )
    key = generate_private_key(request.key_bits)

    if isinstance(request, LeafRequest):
        material = request.signing_material
        issuer = material.certificate.subject
        signing_key = material.key
    else:
        issuer = template.subject
        signing_key = key

    try:
        builder = template.to_builder(key.public_key(), issuer)
        if isinstance(request, LeafRequest):
            builder = builder.add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(
                    request.signing_material.certificate.public_key()  # type: ignore[arg-type]
                ),
                critical=False,
            )
        certificate = builder.sign(private_key=signing_key, algorithm=hashes.SHA256())
    except Exception as e:
        raise SigningError(f"Failed to sign certificate for {template.common_name!r}: {e}") from e

    logger.debug(
        "certificate_signed",
        serial_number=format(serial_number, "x"),
        is_ca=template.is_ca,
        common_name=template.common_name,
        not_after=template.not_after.isoformat(),
    )

    return IssuedCertificate(
        serial_number=serial_number,
        der_bytes=certificate.public_bytes(serialization.Encoding.DER),
        private_key=key,
        _certificate=certificate,
    )
