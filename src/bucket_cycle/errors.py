from typing import List, Optional

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)

# Error codes worth retrying by an outer caller. Nothing in this package retries.
RETRYABLE_CODES = {
    "InternalError",
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "ServiceUnavailable",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "500",
    "503",
}


class SyncError(Exception):
    """Base class for every error the sync run raises."""


class ConfigError(SyncError):
    pass


class CollectError(SyncError):
    def __init__(self, path, cause: Exception) -> None:
        super().__init__(f"cannot read {path}: {cause}")
        self.path = path
        self.cause = cause


class StoreError(SyncError):
    """A put/delete/list call against the object store failed."""

    def __init__(
        self,
        op: str,
        bucket: str,
        key: Optional[str],
        code: Optional[str],
        message: str,
        retryable: bool = False,
    ) -> None:
        target = f"s3://{bucket}/{key}" if key is not None else f"s3://{bucket}"
        detail = f" [{code}]" if code else ""
        kind = "retryable" if retryable else "terminal"
        super().__init__(f"{op} {target} failed{detail}: {message} ({kind})")
        self.op = op
        self.bucket = bucket
        self.key = key
        self.code = code
        self.retryable = retryable

    @classmethod
    def from_boto(cls, op: str, bucket: str, key: Optional[str], exc: Exception) -> "StoreError":
        if isinstance(exc, ClientError):
            err = exc.response.get("Error", {})
            code = str(err.get("Code", "")) or None
            message = err.get("Message") or str(exc)
            return cls(op, bucket, key, code, message, retryable=code in RETRYABLE_CODES)
        retryable = isinstance(exc, (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError))
        code = type(exc).__name__ if isinstance(exc, BotoCoreError) else None
        return cls(op, bucket, key, code, str(exc), retryable=retryable)


class JobError(SyncError):
    def __init__(self, phase: str, failures: List) -> None:
        first = failures[0] if failures else None
        msg = f"{phase} phase: {len(failures)} job(s) failed"
        if first is not None:
            msg += f"; first: {first.error}"
        super().__init__(msg)
        self.phase = phase
        self.failures = failures


class DrainError(SyncError):
    pass
