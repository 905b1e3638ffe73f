"""
CA-reuse workflow.

A :class:`CertificateAuthority` probes its :class:`CertificateStore` for an
existing root certificate. When none exists (``NEED_CA``) a new root is issued
and persisted; otherwise (``HAVE_CA``) the stored root is loaded. The root then
signs one leaf certificate, which is persisted under its first host name.

The store is injected, so the workflow runs the same against the filesystem
(:class:`FileCertificateStore`) or memory (:class:`InMemoryCertificateStore`).
Concurrent runs against the same store are not coordinated.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa

from selfca.builder import build_subject, classify_host
from selfca.errors import ContainerIOError, InvalidRequestError, OutputDirectoryError, SelfCAError
from selfca.model import (
    DEFAULT_KEY_BITS,
    CARequest,
    IssuedCertificate,
    LeafRequest,
    SigningMaterial,
    check_validity_window,
)
from selfca.persistence import certificate_exists, read_certificate, write_certificate
from selfca.signer import fingerprint, issue_certificate
from selfca.util.logging import getLogger

logger = getLogger(__name__)

CA_NAME = "ca"


class CAState(str, Enum):
    NEED_CA = "need_ca"
    HAVE_CA = "have_ca"


class CertificateStore:
    """Abstract storage for named certificate/key pairs."""

    def exists(self, name: str) -> bool:
        raise NotImplementedError

    def load(self, name: str) -> SigningMaterial:
        """Load the pair stored under ``name``; the first certificate is used."""
        raise NotImplementedError

    def save(self, name: str, issued: IssuedCertificate) -> None:
        raise NotImplementedError


class FileCertificateStore(CertificateStore):
    """
    Stores pairs as ``<directory>/<name>.crt`` and ``<directory>/<name>.key``.

    The directory, including missing parents, is created on first save.
    """

    def __init__(self, directory: Union[str, os.PathLike]):
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        return self.directory / name

    def ensure_directory(self) -> None:
        if self.directory.is_dir():
            return
        try:
            self.directory.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise OutputDirectoryError(f"Failed to create {self.directory}: {e.strerror or e}") from e
        logger.debug("output_directory_created", path=str(self.directory))

    def exists(self, name: str) -> bool:
        return certificate_exists(self.path_for(name))

    def load(self, name: str) -> SigningMaterial:
        certificates, key = read_certificate(self.path_for(name))
        return SigningMaterial(key=key, certificate=certificates[0])

    def save(self, name: str, issued: IssuedCertificate) -> None:
        self.ensure_directory()
        write_certificate(self.path_for(name), issued.der_bytes, issued.private_key)


class InMemoryCertificateStore(CertificateStore):
    """Keeps pairs in a dictionary; no filesystem access."""

    def __init__(self):
        self._pairs: Dict[str, Tuple[bytes, rsa.RSAPrivateKey]] = {}

    def exists(self, name: str) -> bool:
        return name in self._pairs

    def load(self, name: str) -> SigningMaterial:
        if name not in self._pairs:
            raise ContainerIOError(f"No certificate stored under {name!r}", artifact="certificate")
        der_bytes, key = self._pairs[name]
        return SigningMaterial(key=key, certificate=x509.load_der_x509_certificate(der_bytes))

    def save(self, name: str, issued: IssuedCertificate) -> None:
        self._pairs[name] = (issued.der_bytes, issued.private_key)

    def names(self) -> list[str]:
        return sorted(self._pairs)


class RootOfTrust:
    """Capability that yields the CA signing material for leaf issuance."""

    state: CAState

    def obtain(self) -> SigningMaterial:
        raise NotImplementedError


class ExistingRootOfTrust(RootOfTrust):
    """Loads a previously persisted CA; never generates a new one."""

    state = CAState.HAVE_CA

    def __init__(self, store: CertificateStore, name: str = CA_NAME):
        self.store = store
        self.name = name

    def obtain(self) -> SigningMaterial:
        try:
            material = self.store.load(self.name)
        except SelfCAError as e:
            e.stage = "load ca certificate"
            raise
        logger.info("ca_loaded", name=self.name, fingerprint=fingerprint(material.certificate))
        return material


class NewRootOfTrust(RootOfTrust):
    """Issues a new self-signed CA and persists it before handing it out."""

    state = CAState.NEED_CA

    def __init__(self, store: CertificateStore, request: CARequest, name: str = CA_NAME):
        self.store = store
        self.request = request
        self.name = name

    def obtain(self) -> SigningMaterial:
        try:
            issued = issue_certificate(self.request)
        except SelfCAError as e:
            e.stage = f"{e.stage} for ca certificate"
            raise

        try:
            self.store.save(self.name, issued)
        except SelfCAError as e:
            if e.stage != OutputDirectoryError.stage:
                e.stage = "write ca certificate"
            raise

        logger.info("ca_created", name=self.name, fingerprint=fingerprint(issued.certificate))
        return issued.signing_material()


@dataclass(frozen=True)
class IssuanceResult:
    """Outcome of one run of the CA-reuse workflow."""

    ca_state: CAState
    ca_certificate: x509.Certificate
    leaf: IssuedCertificate
    leaf_name: str

    @property
    def ca_fingerprint(self) -> str:
        return fingerprint(self.ca_certificate)


class CertificateAuthority:
    """
    Orchestrates load-or-create of the root CA and issuance of a leaf.

    Args:
        store: Where the CA and leaf pairs are persisted
        ca_name: Name of the CA pair within the store
    """

    def __init__(self, store: CertificateStore, ca_name: str = CA_NAME):
        self.store = store
        self.ca_name = ca_name

    def root_of_trust(self, ca_request: CARequest) -> RootOfTrust:
        """Probe the store and pick the load-existing or create-new variant."""
        if self.store.exists(self.ca_name):
            return ExistingRootOfTrust(self.store, self.ca_name)
        return NewRootOfTrust(self.store, ca_request, self.ca_name)

    def issue(
        self,
        hosts: Sequence[str],
        not_before: datetime,
        not_after: datetime,
        ca_not_after: Optional[datetime] = None,
        common_name: Optional[str] = None,
        key_bits: int = DEFAULT_KEY_BITS,
    ) -> IssuanceResult:
        """
        Issue a leaf certificate for ``hosts``, creating the root CA if needed.

        Args:
            hosts: DNS names or IP addresses; the first names the leaf pair
            not_before: Start of validity for the leaf and a new CA
            not_after: End of validity for the leaf
            ca_not_after: End of validity for a new CA; defaults to ``not_after``
            common_name: Leaf subject common name override
            key_bits: RSA key size for the leaf and a new CA

        Returns:
            The issuance result, including whether the CA was created or reused
        """
        # Validate the leaf inputs before any CA work happens
        hosts = tuple(hosts)
        if not hosts:
            raise InvalidRequestError("At least one host is required for a leaf certificate")
        for host in hosts:
            if not isinstance(host, str) or not host.strip():
                raise InvalidRequestError(f"Invalid host entry: {host!r}")
            classify_host(host)
        check_validity_window(not_before, not_after)
        build_subject(common_name, hosts)

        ca_request = CARequest(
            not_before=not_before,
            not_after=ca_not_after or not_after,
            key_bits=key_bits,
        )
        root = self.root_of_trust(ca_request)
        logger.debug("root_of_trust_resolved", state=root.state.value, name=self.ca_name)
        material = root.obtain()

        leaf_request = LeafRequest(
            not_before=not_before,
            not_after=not_after,
            hosts=hosts,
            signing_material=material,
            common_name=common_name,
            key_bits=key_bits,
        )
        try:
            leaf = issue_certificate(leaf_request)
        except SelfCAError as e:
            e.stage = f"{e.stage} for leaf certificate"
            raise

        leaf_name = hosts[0]
        try:
            self.store.save(leaf_name, leaf)
        except SelfCAError as e:
            if e.stage != OutputDirectoryError.stage:
                e.stage = "write the certificate"
            raise

        logger.info(
            "leaf_issued",
            name=leaf_name,
            ca_state=root.state.value,
            serial_number=format(leaf.serial_number, "x"),
        )
        return IssuanceResult(
            ca_state=root.state,
            ca_certificate=material.certificate,
            leaf=leaf,
            leaf_name=leaf_name,
        )
