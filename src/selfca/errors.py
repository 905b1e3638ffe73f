"""
Error types for certificate issuance.

All errors extend SelfCAError and carry the name of the stage that failed, so
callers can report which part of the pipeline broke without inspecting types.
"""

from typing import Optional


class SelfCAError(Exception):
    """
    Base error class for all issuance-related errors.
    """

    stage: str = "issue certificate"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage


class InvalidRequestError(SelfCAError, ValueError):
    """
    Error raised when request inputs are rejected before any key material exists.
    """

    stage = "validate request"


class KeyGenerationError(SelfCAError):
    """
    Error raised when an RSA key pair cannot be generated.
    """

    stage = "generate key"


class SerialNumberError(SelfCAError):
    """
    Error raised when a serial number cannot be drawn.
    """

    stage = "generate serial number"


class SigningError(SelfCAError):
    """
    Error raised when the certificate signature cannot be produced.
    """

    stage = "sign certificate"


class SigningMaterialError(SelfCAError):
    """
    Error raised when leaf signing material is missing or unusable.
    """

    stage = "load signing material"


class PersistenceError(SelfCAError):
    """
    Base error for container encode/decode failures.

    ``artifact`` is either ``"certificate"`` or ``"key"``.
    """

    def __init__(self, message: str, artifact: str, path: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message, stage)
        self.artifact = artifact
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} ({self.path})"
        return self.message


class ContainerIOError(PersistenceError):
    """
    Error raised when a container file cannot be opened, read or written.
    """

    stage = "access certificate files"


class InvalidContainerError(PersistenceError):
    """
    Error raised when a container holds no PEM block.
    """

    stage = "decode certificate files"


class InvalidCertificateError(InvalidContainerError):
    """
    The certificate container is invalid.
    """

    def __init__(self, path: Optional[str] = None):
        super().__init__("The certificate is invalid", artifact="certificate", path=path)


class InvalidKeyError(InvalidContainerError):
    """
    The key container is invalid.
    """

    def __init__(self, path: Optional[str] = None):
        super().__init__("The key is invalid", artifact="key", path=path)


class ContainerParseError(PersistenceError):
    """
    Error raised when the DER payload of a container does not parse.
    """

    stage = "parse certificate files"


class OutputDirectoryError(SelfCAError):
    """
    Error raised when the output directory cannot be created.
    """

    stage = "create output folder"
