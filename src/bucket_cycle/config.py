"""
Centralized defaults for the bucket, endpoint and worker pool.

Edit these constants to set project defaults. CLI flags and environment
variables override these values at runtime.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Default bucket name. Override via CLI `--bucket` or env `S3_BUCKET`.
DEFAULT_BUCKET: str = ""

# Local directory whose files are uploaded. Override via positional `source` or env `SYNC_SOURCE_DIR`.
DEFAULT_SOURCE_DIR: str = "sample"

# Number of concurrent workers per phase. Override via `--pool-size` or env `SYNC_POOL_SIZE`.
DEFAULT_POOL_SIZE: int = 200

# Endpoint built from the account id when no explicit endpoint URL is given.
DEFAULT_ENDPOINT_TEMPLATE: str = "https://{account_id}.r2.cloudflarestorage.com"

# Explicit S3-compatible endpoint URL (e.g., "http://localhost:9000" for MinIO).
DEFAULT_ENDPOINT_URL: Optional[str] = None

# R2 ignores the region but boto3 requires one when signing.
DEFAULT_REGION: Optional[str] = "auto"

# Whether to use path-style addressing ("https://endpoint/bucket/key").
DEFAULT_USE_PATH_STYLE: bool = False


@dataclass
class Settings:
    """Everything one run needs, resolved once and handed to the orchestrator."""

    source_dir: Path
    bucket: str
    drain_bucket: Optional[str] = None
    pool_size: int = DEFAULT_POOL_SIZE
    endpoint_url: Optional[str] = None
    region: Optional[str] = DEFAULT_REGION
    profile: Optional[str] = None
    use_path_style: bool = DEFAULT_USE_PATH_STYLE
    credentials: Optional[dict] = None
    page_size: Optional[int] = None
    exhaustive_listing: bool = False
    max_drain_iterations: Optional[int] = None
    fail_fast: bool = True
    skip_upload: bool = False
    skip_drain: bool = False

    @property
    def target_drain_bucket(self) -> str:
        # The drain empties the upload bucket unless told otherwise
        return self.drain_bucket or self.bucket
