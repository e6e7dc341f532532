"""Units of work handed to the worker pool."""
from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class UploadJob:
    bucket: str
    key: str
    data: bytes = field(repr=False)

    verb = "uploaded"

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def execute(self, store) -> None:
        store.put(self.bucket, self.key, self.data)


@dataclass(frozen=True)
class DeleteJob:
    bucket: str
    key: str

    verb = "deleted"

    def execute(self, store) -> None:
        store.delete(self.bucket, self.key)


Job = Union[UploadJob, DeleteJob]


@dataclass(frozen=True)
class JobFailure:
    job: Job
    error: Exception
