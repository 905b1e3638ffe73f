"""
Immutable request and result types for certificate issuance.

A request is either a :class:`CARequest` (self-signed root) or a
:class:`LeafRequest` (end-entity signed by a CA). Only leaf requests carry
signing material, so a leaf without a signer cannot be constructed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa

from selfca.errors import InvalidRequestError, SigningMaterialError

DEFAULT_KEY_BITS = 2048

ROOT_CA_COMMON_NAME = "Root CA"


def _utc(value: datetime) -> datetime:
    # Naive timestamps are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _normalize_key_bits(key_bits: Optional[int]) -> int:
    if not key_bits or key_bits <= 0:
        return DEFAULT_KEY_BITS
    return key_bits


def check_validity_window(not_before: datetime, not_after: datetime) -> None:
    """Reject a window that ends before it starts; naive timestamps are UTC."""
    not_before, not_after = _utc(not_before), _utc(not_after)
    if not_after < not_before:
        raise InvalidRequestError(
            f"Validity window ends before it starts: {not_before.isoformat()} > {not_after.isoformat()}"
        )


@dataclass(frozen=True)
class SigningMaterial:
    """The issuer's private key and certificate used to sign leaf certificates."""

    key: rsa.RSAPrivateKey
    certificate: x509.Certificate


@dataclass(frozen=True)
class CARequest:
    """Request for a self-signed root certificate authority."""

    not_before: datetime
    not_after: datetime
    common_name: Optional[str] = None
    key_bits: int = DEFAULT_KEY_BITS

    def __post_init__(self):
        object.__setattr__(self, "not_before", _utc(self.not_before))
        object.__setattr__(self, "not_after", _utc(self.not_after))
        object.__setattr__(self, "key_bits", _normalize_key_bits(self.key_bits))
        check_validity_window(self.not_before, self.not_after)

    @property
    def is_ca(self) -> bool:
        return True

    @property
    def hosts(self) -> Tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class LeafRequest:
    """
    Request for an end-entity certificate signed by a CA.

    ``hosts`` must contain at least one entry; the first entry becomes the
    default subject common name.
    """

    not_before: datetime
    not_after: datetime
    hosts: Sequence[str]
    signing_material: SigningMaterial
    common_name: Optional[str] = None
    key_bits: int = DEFAULT_KEY_BITS

    def __post_init__(self):
        hosts = tuple(self.hosts or ())
        if not hosts:
            raise InvalidRequestError("At least one host is required for a leaf certificate")
        for host in hosts:
            if not isinstance(host, str) or not host.strip():
                raise InvalidRequestError(f"Invalid host entry: {host!r}")
        if self.signing_material is None:
            raise SigningMaterialError("CA key and certificate are required to sign a leaf certificate")

        object.__setattr__(self, "hosts", hosts)
        object.__setattr__(self, "not_before", _utc(self.not_before))
        object.__setattr__(self, "not_after", _utc(self.not_after))
        object.__setattr__(self, "key_bits", _normalize_key_bits(self.key_bits))
        check_validity_window(self.not_before, self.not_after)

    @property
    def is_ca(self) -> bool:
        return False


IssuanceRequest = Union[CARequest, LeafRequest]


@dataclass(frozen=True)
class IssuedCertificate:
    """A signed certificate together with its freshly generated private key."""

    serial_number: int
    der_bytes: bytes
    private_key: rsa.RSAPrivateKey
    _certificate: Optional[x509.Certificate] = field(default=None, repr=False, compare=False)

    @property
    def certificate(self) -> x509.Certificate:
        if self._certificate is None:
            object.__setattr__(self, "_certificate", x509.load_der_x509_certificate(self.der_bytes))
        return self._certificate  # type: ignore[return-value]

    def signing_material(self) -> SigningMaterial:
        """Use this certificate and key as the signer for leaf certificates."""
        return SigningMaterial(key=self.private_key, certificate=self.certificate)
