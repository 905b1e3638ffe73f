"""
PEM container encode/decode for certificate and key pairs.

A pair is stored as two sibling files sharing a base name:

- ``<name>.crt``: one ``CERTIFICATE`` block holding the DER certificate
- ``<name>.key``: one ``RSA PRIVATE KEY`` block holding the PKCS#1 DER key

Writing is not atomic across the two files. The certificate is written first
and is left in place if writing the key fails; readers detect the resulting
missing or malformed key file.
"""

from __future__ import annotations

import base64
import binascii
import os
import re
from pathlib import Path
from typing import List, Optional, Tuple, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from selfca.errors import (
    ContainerIOError,
    ContainerParseError,
    InvalidCertificateError,
    InvalidKeyError,
)
from selfca.util.logging import getLogger

logger = getLogger(__name__)

CERTIFICATE_SUFFIX = ".crt"
KEY_SUFFIX = ".key"

CERTIFICATE_LABEL = "CERTIFICATE"
KEY_LABEL = "RSA PRIVATE KEY"

KEY_FILE_MODE = 0o600

_PEM_BLOCK = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----\r?\n"
    rb"(?P<headers>(?:[A-Za-z0-9-]+:[^\n]*\r?\n)*\r?\n?)?"
    rb"(?P<body>[A-Za-z0-9+/=\s]*?)"
    rb"-----END (?P=label)-----",
)

PathLike = Union[str, os.PathLike]


def certificate_paths(name: PathLike) -> Tuple[Path, Path]:
    """Return the ``(<name>.crt, <name>.key)`` paths for a base name."""
    base = os.fspath(name)
    return Path(base + CERTIFICATE_SUFFIX), Path(base + KEY_SUFFIX)


def certificate_exists(name: PathLike) -> bool:
    """Probe for an existing pair; only the certificate file is checked."""
    cert_path, _ = certificate_paths(name)
    return cert_path.exists()


def decode_pem(data: bytes) -> Tuple[str, bytes]:
    """
    Extract the first PEM block from ``data``.

    Only used for certificate files, whose block may carry several
    concatenated DER certificates that the standard PEM loaders reject.

    Returns:
        Tuple of (label, der_bytes)

    Raises:
        ValueError: If no well-formed PEM block is present
    """
    match = _PEM_BLOCK.search(data)
    if match is None:
        raise ValueError("no PEM block found")
    try:
        der = base64.b64decode(b"".join(match.group("body").split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"malformed PEM body: {e}") from e
    return match.group("label").decode("ascii"), der


def _pem_label(data: bytes) -> Optional[str]:
    match = _PEM_BLOCK.search(data)
    return match.group("label").decode("ascii") if match else None


def _split_der_sequence(der: bytes) -> List[bytes]:
    """Split concatenated DER values into their individual encodings."""
    items = []
    offset = 0
    while offset < len(der):
        if len(der) - offset < 2:
            raise ValueError("truncated DER header")
        length = der[offset + 1]
        header = 2
        if length & 0x80:
            count = length & 0x7F
            if count == 0 or count > 4 or len(der) - offset < 2 + count:
                raise ValueError("unsupported DER length encoding")
            length = int.from_bytes(der[offset + 2 : offset + 2 + count], "big")
            header += count
        end = offset + header + length
        if end > len(der):
            raise ValueError("truncated DER value")
        items.append(der[offset:end])
        offset = end
    return items


def _read_file(path: Path, artifact: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise ContainerIOError(
            f"Failed to read {artifact}: {e.strerror or e}", artifact=artifact, path=str(path)
        ) from e


def _write_file(path: Path, data: bytes, artifact: str, mode: Optional[int] = None) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644 if mode is None else mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # os.open only applies the mode to newly created files
        if mode is not None:
            os.chmod(path, mode)
    except OSError as e:
        raise ContainerIOError(
            f"Failed to write {artifact}: {e.strerror or e}", artifact=artifact, path=str(path)
        ) from e


def write_certificate(name: PathLike, certificate: bytes, key: rsa.RSAPrivateKey) -> None:
    """
    Write a certificate and its private key as ``<name>.crt`` and ``<name>.key``.

    Args:
        name: Base path of the pair, without suffix
        certificate: DER-encoded certificate
        key: The certificate's RSA private key

    Raises:
        ContainerIOError: If either file cannot be written. A failure on the
            key file does not remove the already written certificate file.
        ContainerParseError: If ``certificate`` is not a DER certificate
    """
    cert_path, key_path = certificate_paths(name)

    if not certificate:
        raise ContainerIOError("No certificate to write", artifact="certificate", path=str(cert_path))
    if key is None:
        raise ContainerIOError("No key to write", artifact="key", path=str(key_path))

    try:
        cert_pem = x509.load_der_x509_certificate(certificate).public_bytes(serialization.Encoding.PEM)
    except ValueError as e:
        raise ContainerParseError(
            f"Failed to parse certificate: {e}", artifact="certificate", path=str(cert_path)
        ) from e
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )

    _write_file(cert_path, cert_pem, "certificate")
    _write_file(key_path, key_pem, "key", mode=KEY_FILE_MODE)

    logger.debug("certificate_written", certificate_path=str(cert_path), key_path=str(key_path))


def read_certificate(name: PathLike) -> Tuple[List[x509.Certificate], rsa.RSAPrivateKey]:
    """
    Read a certificate pair written by :func:`write_certificate`.

    The certificate block may hold more than one DER certificate; all are
    returned and the first is the usable one.

    Raises:
        ContainerIOError: If either file cannot be read
        InvalidCertificateError: If the certificate file holds no PEM block
        InvalidKeyError: If the key file holds no PEM block
        ContainerParseError: If either payload does not parse
    """
    cert_path, key_path = certificate_paths(name)

    data = _read_file(cert_path, "certificate")
    try:
        label, der = decode_pem(data)
    except ValueError as e:
        raise InvalidCertificateError(path=str(cert_path)) from e
    if label != CERTIFICATE_LABEL:
        logger.warning("unexpected_pem_label", path=str(cert_path), label=label, expected=CERTIFICATE_LABEL)

    try:
        certificates = [x509.load_der_x509_certificate(item) for item in _split_der_sequence(der)]
    except ValueError as e:
        raise ContainerParseError(
            f"Failed to parse certificate: {e}", artifact="certificate", path=str(cert_path)
        ) from e
    if not certificates:
        raise ContainerParseError("Certificate block is empty", artifact="certificate", path=str(cert_path))

    data = _read_file(key_path, "key")
    label = _pem_label(data)
    if label is None:
        raise InvalidKeyError(path=str(key_path))
    if label != KEY_LABEL:
        logger.warning("unexpected_pem_label", path=str(key_path), label=label, expected=KEY_LABEL)

    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ContainerParseError(f"Failed to parse key: {e}", artifact="key", path=str(key_path)) from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ContainerParseError(
            f"Expected an RSA private key, got {type(key).__name__}", artifact="key", path=str(key_path)
        )

    logger.debug("certificate_read", certificate_path=str(cert_path), count=len(certificates))
    return certificates, key
