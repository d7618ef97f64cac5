"""
Exceptions raised while resolving, staging, signing and verifying modules.

Every error is fatal to the module reference being processed. None of them
are retried automatically; OperationTimeoutError is the only one a caller
may reasonably retry.
"""


class ModuleCosignError(Exception):
    """Base exception for terraform-module-cosign."""


class InvalidArgumentError(ModuleCosignError):
    """Raised when a local module reference cannot be used."""

    def __init__(self, reference: str, reason: str) -> None:
        self.reference = reference
        self.reason = reason
        super().__init__(f"Invalid argument value {reference}: {reason}")


class InvalidURLKindError(ModuleCosignError):
    """Raised when a remote reference is not a decodable S3-style URL."""

    def __init__(self, url: str, reason: str = "URL is not a valid S3 URL") -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


class DownloadFailedError(ModuleCosignError):
    """Raised when an object cannot be fetched from the object store."""

    def __init__(self, bucket: str, key: str, cause: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"Failed to download s3://{bucket}/{key}: {cause}")


class UploadFailedError(ModuleCosignError):
    """Raised when a signature cannot be written to the object store."""

    def __init__(self, bucket: str, key: str, cause: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"Failed to upload s3://{bucket}/{key}: {cause}")


class ModuleLoadFailedError(ModuleCosignError):
    """Raised when a directory cannot be loaded as a Terraform module."""

    def __init__(self, directory: str, reason: str) -> None:
        self.directory = directory
        self.reason = reason
        super().__init__(f"Failed to read Terraform module directory {directory}: {reason}")


class StagingIOError(ModuleCosignError):
    """Raised when the local workspace or a staged file cannot be written."""


class SigningFailedError(ModuleCosignError):
    """Raised when the signing engine fails to sign a module archive."""

    def __init__(self, module: str, reason: str) -> None:
        self.module = module
        self.reason = reason
        super().__init__(f"Error signing [{module}]: {reason}")


class VerificationFailedError(ModuleCosignError):
    """Raised when a module archive does not verify against its signature.

    A signature mismatch is an expected outcome, not a bug.
    """

    def __init__(self, module: str, reason: str) -> None:
        self.module = module
        self.reason = reason
        super().__init__(f"Error verifying module {module}: {reason}")


class OperationTimeoutError(ModuleCosignError):
    """Raised when an external call exceeds its deadline."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation} timed out after {timeout_seconds:g}s")


class UnexpectedError(ModuleCosignError):
    """Wraps any other exception raised while processing one module reference."""

    def __init__(self, reference: str, cause: BaseException) -> None:
        self.reference = reference
        self.cause = cause
        super().__init__(
            f"Unexpected error processing {reference}: {type(cause).__name__}: {cause}"
        )
