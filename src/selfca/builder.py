"""
Certificate template construction.

Turns an issuance request into a :class:`CertificateTemplate`: every field and
extension of the certificate except the subject public key and the issuer,
which are only known at signing time.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from selfca.errors import InvalidRequestError
from selfca.model import ROOT_CA_COMMON_NAME, IssuanceRequest

CA_KEY_USAGE = x509.KeyUsage(
    digital_signature=True,
    content_commitment=False,
    key_encipherment=False,
    data_encipherment=False,
    key_agreement=False,
    key_cert_sign=True,
    crl_sign=False,
    encipher_only=False,
    decipher_only=False,
)

LEAF_KEY_USAGE = x509.KeyUsage(
    digital_signature=True,
    content_commitment=False,
    key_encipherment=True,
    data_encipherment=False,
    key_agreement=False,
    key_cert_sign=False,
    crl_sign=False,
    encipher_only=False,
    decipher_only=False,
)

EXTENDED_KEY_USAGE = x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH])


@dataclass(frozen=True)
class CertificateTemplate:
    """A fully populated, ready-to-sign certificate descriptor."""

    serial_number: int
    subject: x509.Name
    not_before: datetime
    not_after: datetime
    is_ca: bool
    key_usage: x509.KeyUsage
    extended_key_usage: x509.ExtendedKeyUsage
    subject_alt_names: Tuple[x509.GeneralName, ...] = ()

    @property
    def common_name(self) -> str:
        return self.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value  # type: ignore[return-value]

    def to_builder(self, public_key: rsa.RSAPublicKey, issuer: x509.Name) -> x509.CertificateBuilder:
        """
        Produce a cryptography CertificateBuilder for this template.

        Basic constraints are always present and critical; the CA flag follows
        the template role.
        """
        builder = (
            x509.CertificateBuilder()
            .serial_number(self.serial_number)
            .subject_name(self.subject)
            .issuer_name(issuer)
            .public_key(public_key)
            .not_valid_before(self.not_before)
            .not_valid_after(self.not_after)
            .add_extension(x509.BasicConstraints(ca=self.is_ca, path_length=None), critical=True)
            .add_extension(self.key_usage, critical=True)
            .add_extension(self.extended_key_usage, critical=False)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        )
        if self.subject_alt_names:
            builder = builder.add_extension(
                x509.SubjectAlternativeName(list(self.subject_alt_names)), critical=False
            )
        return builder


def classify_host(host: str) -> x509.GeneralName:
    """Classify a host entry as an IP address SAN if it parses as one, else a DNS name SAN."""
    try:
        return x509.IPAddress(ipaddress.ip_address(host))
    except ValueError:
        pass

    try:
        return x509.DNSName(host)
    except ValueError as e:
        raise InvalidRequestError(f"Invalid host entry {host!r}: {e}") from e


def default_common_name(request: IssuanceRequest) -> str:
    if request.common_name:
        return request.common_name
    if request.is_ca:
        return ROOT_CA_COMMON_NAME
    return request.hosts[0]


def build_subject(common_name: Optional[str], hosts: Sequence[str] = (), is_ca: bool = False) -> x509.Name:
    """
    Build the subject name for a certificate.

    An explicit ``common_name`` must fit the X.509 common name bounds. A leaf
    without one is named after its first host, which may be any DNS name and
    so is not held to the 64 character upper bound.

    Raises:
        InvalidRequestError: If the explicit common name is unusable
    """
    if common_name:
        try:
            attribute = x509.NameAttribute(NameOID.COMMON_NAME, common_name)
        except ValueError as e:
            raise InvalidRequestError(f"Invalid common name {common_name!r}: {e}") from e
    elif is_ca:
        attribute = x509.NameAttribute(NameOID.COMMON_NAME, ROOT_CA_COMMON_NAME)
    else:
        attribute = x509.NameAttribute(NameOID.COMMON_NAME, hosts[0], _validate=False)
    return x509.Name([attribute])


def build_template(request: IssuanceRequest, serial_number: int) -> CertificateTemplate:
    """
    Build the certificate template for a CA or leaf request.

    Args:
        request: The CA or leaf issuance request
        serial_number: Freshly drawn serial number for this certificate

    Returns:
        The populated certificate template
    """
    return CertificateTemplate(
        serial_number=serial_number,
        subject=build_subject(request.common_name, request.hosts, request.is_ca),
        not_before=request.not_before,
        not_after=request.not_after,
        is_ca=request.is_ca,
        key_usage=CA_KEY_USAGE if request.is_ca else LEAF_KEY_USAGE,
        extended_key_usage=EXTENDED_KEY_USAGE,
        subject_alt_names=tuple(classify_host(host) for host in request.hosts),
    )
