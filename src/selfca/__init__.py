"""
Self-signed certificate authority.

Issues a root CA and leaf certificates signed by it, and persists both as
PEM containers so a root can be reused across runs.
"""

from .authority import (
    CA_NAME,
    CAState,
    CertificateAuthority,
    CertificateStore,
    ExistingRootOfTrust,
    FileCertificateStore,
    InMemoryCertificateStore,
    IssuanceResult,
    NewRootOfTrust,
    RootOfTrust,
)
from .builder import CertificateTemplate, build_subject, build_template, classify_host, default_common_name
from .errors import (
    ContainerIOError,
    ContainerParseError,
    InvalidCertificateError,
    InvalidContainerError,
    InvalidKeyError,
    InvalidRequestError,
    KeyGenerationError,
    OutputDirectoryError,
    PersistenceError,
    SelfCAError,
    SerialNumberError,
    SigningError,
    SigningMaterialError,
)
from .model import (
    DEFAULT_KEY_BITS,
    ROOT_CA_COMMON_NAME,
    CARequest,
    IssuanceRequest,
    IssuedCertificate,
    LeafRequest,
    SigningMaterial,
    check_validity_window,
)
from .persistence import certificate_exists, certificate_paths, read_certificate, write_certificate
from .signer import fingerprint, generate_private_key, generate_serial_number, issue_certificate

__version__ = "0.4.0"


def version() -> str:
    return __version__


def author() -> str:
    return "selfca contributors"


def license() -> str:
    return "Licensed under the Apache License 2.0"


__all__ = [
    # Requests and results
    "CARequest",
    "LeafRequest",
    "IssuanceRequest",
    "SigningMaterial",
    "IssuedCertificate",
    "DEFAULT_KEY_BITS",
    "ROOT_CA_COMMON_NAME",
    "check_validity_window",
    # Builder
    "CertificateTemplate",
    "build_template",
    "build_subject",
    "classify_host",
    "default_common_name",
    # Signer
    "issue_certificate",
    "generate_private_key",
    "generate_serial_number",
    "fingerprint",
    # Persistence
    "write_certificate",
    "read_certificate",
    "certificate_exists",
    "certificate_paths",
    # Workflow
    "CA_NAME",
    "CAState",
    "CertificateAuthority",
    "CertificateStore",
    "FileCertificateStore",
    "InMemoryCertificateStore",
    "RootOfTrust",
    "ExistingRootOfTrust",
    "NewRootOfTrust",
    "IssuanceResult",
    # Errors
    "SelfCAError",
    "InvalidRequestError",
    "KeyGenerationError",
    "SerialNumberError",
    "SigningError",
    "SigningMaterialError",
    "PersistenceError",
    "ContainerIOError",
    "InvalidContainerError",
    "InvalidCertificateError",
    "InvalidKeyError",
    "ContainerParseError",
    "OutputDirectoryError",
    # About
    "version",
    "author",
    "license",
]
