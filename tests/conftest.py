"""
Shared fixtures for selfca tests.

RSA key generation dominates test time, so the CAs are session scoped.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from selfca import CARequest, LeafRequest, issue_certificate
from selfca.util.logging import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_selfca_logger():
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if getattr(handler, "_selfca_handler", False):
            root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


@pytest.fixture(scope="session")
def validity():
    not_before = datetime.now(timezone.utc).replace(microsecond=0)
    return not_before, not_before + timedelta(days=365)


@pytest.fixture(scope="session")
def ca(validity):
    not_before, not_after = validity
    return issue_certificate(CARequest(not_before=not_before, not_after=not_after))


@pytest.fixture(scope="session")
def other_ca(validity):
    not_before, not_after = validity
    return issue_certificate(CARequest(not_before=not_before, not_after=not_after))


@pytest.fixture(scope="session")
def leaf(ca, validity):
    not_before, not_after = validity
    return issue_certificate(
        LeafRequest(
            not_before=not_before,
            not_after=not_after,
            hosts=["127.0.0.1", "example.com"],
            signing_material=ca.signing_material(),
        )
    )
