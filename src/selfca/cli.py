"""
Command line entry point.

Creates (or reuses) ``<output>/ca.crt`` and ``<output>/ca.key`` and issues a
leaf certificate for the given hosts into ``<output>/<first host>.crt``.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from selfca import author, version
from selfca.authority import CertificateAuthority, FileCertificateStore
from selfca.config import DEFAULT_CA_DAYS, DEFAULT_DAYS, DEFAULT_OUTPUT_DIR, IssuanceSettings
from selfca.errors import SelfCAError
from selfca.model import DEFAULT_KEY_BITS
from selfca.util.logging import enable_logging, getLogger

logger = getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    # -h is taken by hosts, so help is long-form only
    parser = argparse.ArgumentParser(
        prog="selfca",
        description="Issue a self-signed CA and certificates signed by it.",
        add_help=False,
    )
    parser.add_argument("--help", action="help", help="Show this help message and exit")
    parser.add_argument("-n", "--name", dest="common_name", default="", help="Common name of the certificate")
    parser.add_argument(
        "-h", "--hosts", dest="hosts", default="", help="Domains or IPs of the certificate, comma separated"
    )
    parser.add_argument(
        "-b",
        "--bits",
        dest="key_bits",
        type=int,
        default=DEFAULT_KEY_BITS,
        help=f"Number of bits in the key to create (default {DEFAULT_KEY_BITS})",
    )
    parser.add_argument(
        "-s",
        "--start",
        dest="not_before",
        default="",
        help="Valid from of the certificate, formatted as 2006-01-02 15:04:05 (default now)",
    )
    parser.add_argument(
        "-d",
        "--days",
        dest="days",
        type=int,
        default=DEFAULT_DAYS,
        help=f"Valid days of the certificate (default {DEFAULT_DAYS})",
    )
    parser.add_argument(
        "--ca-days",
        dest="ca_days",
        type=int,
        default=DEFAULT_CA_DAYS,
        help=f"Valid days of a newly created CA certificate (default {DEFAULT_CA_DAYS})",
    )
    parser.add_argument(
        "-o",
        "--output",
        dest="output_dir",
        default=None,
        help=f"Folder for saving the certificate (default {DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument("--log-level", dest="log_level", default=None, help="Log level (default warning)")
    parser.add_argument("-v", "--version", action="store_true", help="Show the selfca version")
    return parser


def _fail(stage: str, error: Exception) -> int:
    print(f"Failed to {stage}: {error}", file=sys.stderr)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"selfca version {version()}")
        print(author())
        return 0

    if not args.hosts.strip(" ,"):
        parser.print_usage(sys.stderr)
        return 1

    try:
        settings = IssuanceSettings.from_options(
            hosts=args.hosts,
            common_name=args.common_name,
            key_bits=args.key_bits,
            not_before=args.not_before,
            days=args.days,
            ca_days=args.ca_days,
            output_dir=args.output_dir,
            log_level=args.log_level,
        )
    except SelfCAError as e:
        return _fail(e.stage, e)

    enable_logging(log_level=settings.log_level)
    windows = settings.validity_windows()

    store = FileCertificateStore(settings.output_dir)
    try:
        store.ensure_directory()
        result = CertificateAuthority(store).issue(
            hosts=settings.hosts,
            not_before=windows.not_before,
            not_after=windows.not_after,
            ca_not_after=windows.ca_not_after,
            common_name=settings.common_name,
            key_bits=settings.key_bits,
        )
    except SelfCAError as e:
        return _fail(e.stage, e)

    logger.info(
        "issuance_complete",
        output_dir=str(settings.output_dir),
        leaf=result.leaf_name,
        ca_state=result.ca_state.value,
        ca_fingerprint=result.ca_fingerprint,
    )
    return 0
