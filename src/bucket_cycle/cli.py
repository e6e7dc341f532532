import argparse
import csv
import os
import subprocess
from pathlib import Path
from typing import List, Optional

from . import config as cfg
from .config import Settings
from .console import ConsoleReporter
from .errors import ConfigError, SyncError
from .orchestrator import Orchestrator
from .phases import PhaseReport


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="bucket-cycle",
        description="Upload every file under a directory to an S3-compatible bucket concurrently, then delete every object in the bucket until it is empty.",
    )
    p.add_argument("source", nargs="?", type=Path, help="Directory to upload (or use env/config)")
    p.add_argument("bucket", nargs="?", type=str, help="Target bucket name (or use --bucket/env/config)")
    p.add_argument(
        "--bucket",
        dest="bucket_flag",
        default=None,
        help="Bucket name override (alternative to positional arg)",
    )
    p.add_argument(
        "--drain-bucket",
        default=None,
        help="Bucket to empty in the drain phase (defaults to the upload bucket)",
    )
    p.add_argument(
        "--endpoint-url",
        default=None,
        help="Custom S3-compatible endpoint URL (e.g., http://localhost:9000)",
    )
    p.add_argument(
        "--account-id",
        default=None,
        help="Cloudflare account id used to build the R2 endpoint when no endpoint URL is given",
    )
    p.add_argument("--region", default=None, help="Region for the S3 client (defaults to config)")
    p.add_argument("--profile", default=None, help="AWS profile name to use for credentials (optional)")
    p.add_argument(
        "--path-style",
        action="store_true",
        help="Use path-style addressing (required by some S3-compatible services)",
    )
    p.add_argument(
        "--pool-size",
        "-c",
        type=int,
        default=None,
        help=f"Number of concurrent workers per phase (default {cfg.DEFAULT_POOL_SIZE})",
    )
    p.add_argument("--page-size", type=int, default=None, help="MaxKeys for each listing call")
    p.add_argument(
        "--exhaustive-listing",
        action="store_true",
        help="Follow continuation tokens so each drain iteration sees the whole bucket",
    )
    p.add_argument(
        "--max-drain-iterations",
        type=int,
        default=None,
        help="Give up if the bucket is still not empty after this many list/delete rounds",
    )
    p.add_argument(
        "--keep-going",
        action="store_true",
        help="Attempt every job in a phase before aborting on failures",
    )
    p.add_argument("--skip-upload", action="store_true", help="Only drain the bucket")
    p.add_argument("--skip-drain", action="store_true", help="Only upload the files")
    p.add_argument("--quiet", "-q", action="store_true", help="Only print phase summaries")
    # 1Password integration (requires `op` CLI and signed-in session)
    p.add_argument(
        "--op-access",
        default=None,
        help="1Password reference for the access key, e.g. op://Vault/Item/AccessKeyId",
    )
    p.add_argument(
        "--op-secret",
        default=None,
        help="1Password reference for the secret, e.g. op://Vault/Item/SecretAccessKey",
    )
    p.add_argument(
        "--op-session-token",
        default=None,
        help="Optional 1Password reference for a session token",
    )
    p.add_argument("--csv", type=Path, default=None, help="Optional path to write per-phase CSV results")
    return p.parse_args(argv)


def _op_read(ref: str) -> Optional[str]:
    """Read a secret value from 1Password using `op read <ref>`.

    Returns None if `op` is not available or the read fails.
    """
    try:
        proc = subprocess.run(
            ["op", "read", ref],
            check=True,
            capture_output=True,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return proc.stdout.strip()


def _first(*values):
    """First non-empty value, or None."""
    return next((v for v in values if v), None)


def resolve_bucket(args: argparse.Namespace) -> Optional[str]:
    # Priority: --bucket flag > positional arg > env S3_BUCKET > config.DEFAULT_BUCKET
    return _first(args.bucket_flag, args.bucket, os.getenv("S3_BUCKET"), cfg.DEFAULT_BUCKET)


def resolve_source(args: argparse.Namespace) -> Path:
    return Path(_first(args.source, os.getenv("SYNC_SOURCE_DIR"), cfg.DEFAULT_SOURCE_DIR))


def resolve_endpoint(args: argparse.Namespace) -> Optional[str]:
    # Priority: --endpoint-url > env S3_ENDPOINT_URL > config > account id template
    explicit = _first(args.endpoint_url, os.getenv("S3_ENDPOINT_URL"), cfg.DEFAULT_ENDPOINT_URL)
    if explicit:
        return explicit
    account_id = _first(args.account_id, os.getenv("R2_ACCOUNT_ID"))
    if account_id:
        return cfg.DEFAULT_ENDPOINT_TEMPLATE.format(account_id=account_id)
    return None


def resolve_pool_size(args: argparse.Namespace) -> int:
    raw = args.pool_size if args.pool_size is not None else os.getenv("SYNC_POOL_SIZE")
    if raw is None or raw == "":
        return cfg.DEFAULT_POOL_SIZE
    try:
        size = int(raw)
    except ValueError:
        raise ConfigError(f"pool size must be an integer, got {raw!r}") from None
    if size < 1:
        raise ConfigError(f"pool size must be at least 1, got {size}")
    return size


def _resolve_secret(op_ref: Optional[str], env_var: str) -> Optional[str]:
    # Priority: 1Password reference > env var
    return _first(_op_read(op_ref) if op_ref else None, os.getenv(env_var))


def resolve_credentials(args: argparse.Namespace) -> Optional[dict]:
    access = _resolve_secret(args.op_access, "AWS_ACCESS_KEY_ID")
    secret = _resolve_secret(args.op_secret, "AWS_SECRET_ACCESS_KEY")
    token = _resolve_secret(args.op_session_token, "AWS_SESSION_TOKEN")

    if bool(access) != bool(secret):
        raise ConfigError("both an access key id and a secret access key are required")
    if access and secret:
        creds = {"aws_access_key_id": access, "aws_secret_access_key": secret}
        if token:
            creds["aws_session_token"] = token
        return creds
    return None


def build_settings(args: argparse.Namespace) -> Settings:
    if args.skip_upload and args.skip_drain:
        raise ConfigError("--skip-upload and --skip-drain together leave nothing to do")
    bucket = resolve_bucket(args)
    if not bucket:
        raise ConfigError(
            "Bucket name not provided. Pass positional <bucket>, use --bucket, set env S3_BUCKET, or edit config.DEFAULT_BUCKET."
        )
    if args.page_size is not None and not 1 <= args.page_size <= 1000:
        raise ConfigError(f"page size must be between 1 and 1000, got {args.page_size}")
    if args.max_drain_iterations is not None and args.max_drain_iterations < 1:
        raise ConfigError(f"max drain iterations must be at least 1, got {args.max_drain_iterations}")

    return Settings(
        source_dir=resolve_source(args),
        bucket=bucket,
        drain_bucket=args.drain_bucket or os.getenv("S3_DRAIN_BUCKET") or None,
        pool_size=resolve_pool_size(args),
        endpoint_url=resolve_endpoint(args),
        region=args.region or cfg.DEFAULT_REGION,
        profile=args.profile,
        use_path_style=bool(args.path_style or cfg.DEFAULT_USE_PATH_STYLE),
        credentials=resolve_credentials(args),
        page_size=args.page_size,
        exhaustive_listing=args.exhaustive_listing,
        max_drain_iterations=args.max_drain_iterations,
        fail_fast=not args.keep_going,
        skip_upload=args.skip_upload,
        skip_drain=args.skip_drain,
    )


def write_csv(reports: List[PhaseReport], csv_path: Path) -> None:
    with csv_path.open("w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["phase", "iteration", "count", "total", "elapsed_sec", "files_per_sec"])
        for r in reports:
            writer.writerow(
                [r.phase, r.iteration, r.count, r.total, f"{r.elapsed_sec:.6f}", f"{r.files_per_sec:.3f}"]
            )


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    reporter = ConsoleReporter(quiet=args.quiet)

    try:
        settings = build_settings(args)
    except ConfigError as e:
        reporter.error(str(e))
        return 2

    reporter.info(
        f"Syncing {settings.source_dir} to s3://{settings.bucket}"
        + (f", draining s3://{settings.target_drain_bucket}" if not settings.skip_drain else "")
        + (f" via {settings.endpoint_url}" if settings.endpoint_url else "")
        + (" (path-style)" if settings.use_path_style else "")
        + f" with {settings.pool_size} workers"
    )

    try:
        orchestrator = Orchestrator.from_settings(settings, reporter)
    except ConfigError as e:
        reporter.error(str(e))
        return 2

    try:
        result = orchestrator.run()
    except SyncError as e:
        reporter.error(f"error: {e}")
        return 1

    if args.csv:
        write_csv(result.reports, args.csv)
        reporter.info(f"Wrote CSV results to: {args.csv}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
