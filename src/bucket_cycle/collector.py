"""File collection for the upload phase."""
from pathlib import Path
from typing import List

from .errors import CollectError
from .jobs import UploadJob


def collect(root: Path, bucket: str) -> List[UploadJob]:
    """
    Read every regular file under ``root`` into an upload job.

    Keys are file base names, so same-named files in different directories
    produce jobs with the same key and the later one overwrites the earlier
    in the bucket.

    Raises:
        CollectError: root is missing or not a directory, or any file cannot be read
    """
    root = Path(root)
    if not root.is_dir():
        raise CollectError(root, NotADirectoryError("not a directory"))

    jobs: List[UploadJob] = []
    try:
        paths = sorted(root.rglob("*"))
    except OSError as e:
        raise CollectError(root, e) from e

    for path in paths:
        try:
            if not path.is_file():
                continue
            data = path.read_bytes()
        except OSError as e:
            raise CollectError(path, e) from e
        jobs.append(UploadJob(bucket=bucket, key=path.name, data=data))
    return jobs
