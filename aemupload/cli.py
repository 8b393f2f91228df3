"""Command line interface for aemupload."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from rich.logging import RichHandler

from . import __version__
from .cli_progress import UploadProgressDisplay, render_configuration_summary
from .config import DEFAULT_MAX_CONCURRENT, DEFAULT_MAX_PATHS, DEFAULT_MAX_UPLOAD_FILES, FileSystemUploadConfig
from .errors import UploadError
from .orchestrator import UploadOrchestrator
from .results import UploadResult

TARGET_URL_ENV = "AEM_TARGET_URL"
CREDENTIALS_ENV = "AEM_CREDENTIALS"
PROXY_ENV = "AEM_HTTP_PROXY"
ENV_PREFIX = "AEM_"
KNOWN_ENV_KEYS = frozenset({TARGET_URL_ENV, CREDENTIALS_ENV, PROXY_ENV})
DEFAULT_ENV_FILE = ".env"


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level and not os.getenv("LOG_LEVEL")):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # keep transport chatter out of debug output
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    logging.getLogger("httpcore").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _unquote(value: str) -> str:
    for quote in ("'", '"'):
        if len(value) >= 2 and value.startswith(quote) and value.endswith(quote):
            return value[1:-1]
    return value


def _parse_env_lines(lines: Iterable[str]) -> Dict[str, str]:
    """
    Parse ``KEY=VALUE`` lines of a .env file.

    Comments, blank lines and lines without ``=`` are skipped. Keys with the
    ``AEM_`` prefix must be settings this CLI reads, so a typo fails loudly
    instead of silently falling back to defaults.
    """
    values: Dict[str, str] = {}
    for number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.removeprefix("export ").partition("=")
        key = key.strip()
        if not key:
            continue
        if key.startswith(ENV_PREFIX) and key not in KNOWN_ENV_KEYS:
            known = ", ".join(sorted(KNOWN_ENV_KEYS))
            raise CLIError(f"line {number}: unknown setting {key} (expected one of {known})")
        values[key] = _unquote(value.strip())
    return values


def _load_env_file(path: Path, override: bool = False) -> Dict[str, str]:
    """Export the settings of ``path``; existing variables win unless ``override``."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise CLIError(f"env file not found: {path}") from exc
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    try:
        values = _parse_env_lines(content.splitlines())
    except CLIError as exc:
        raise CLIError(f"{path}: {exc}") from exc

    for key, value in values.items():
        if override or key not in os.environ:
            os.environ[key] = value
    return values


def _resolve_default_env_file(directory: Optional[Path] = None) -> Optional[Path]:
    candidate = (directory or Path.cwd()) / DEFAULT_ENV_FILE
    return candidate if candidate.is_file() else None


def _parse_credentials(value: Optional[str]) -> Optional[Tuple[str, str]]:
    if not value:
        return None
    if ":" not in value:
        raise CLIError("credentials must be given as user:password")
    user, password = value.split(":", 1)
    if not user:
        raise CLIError("credentials are missing a user name")
    return user, password


def _build_config(args: argparse.Namespace) -> FileSystemUploadConfig:
    target = args.target or os.getenv(TARGET_URL_ENV)
    if not target:
        raise CLIError(f"no target folder url given (use --target or {TARGET_URL_ENV})")

    try:
        config = FileSystemUploadConfig(
            url=target,
            concurrent=not args.serial,
            max_concurrent=args.max_concurrent,
            http_retry_count=args.retry_count,
            http_retry_delay=args.retry_delay,
            deep_upload=args.deep,
            max_upload_files=args.max_files,
            max_paths=args.max_paths,
            invalid_character_replace_value=args.replace_value,
            create_version=args.create_version,
            version_label=args.version_label,
            version_comment=args.version_comment,
            replace=args.replace,
            http_proxy=args.proxy or os.getenv(PROXY_ENV) or None,
        )
    except UploadError as exc:
        raise CLIError(f"invalid options: {exc.message}") from exc

    credentials = _parse_credentials(args.credentials or os.getenv(CREDENTIALS_ENV))
    if credentials:
        config = config.with_basic_auth(*credentials)
    return config


async def _run_upload(
    config: FileSystemUploadConfig,
    paths: List[Path],
    output: Optional[Path],
    show_progress: bool,
) -> int:
    orchestrator = UploadOrchestrator()
    display = UploadProgressDisplay(enabled=show_progress)
    orchestrator.on_file_start(display.on_file_start)
    orchestrator.on_file_progress(display.on_file_progress)
    orchestrator.on_file_end(display.on_file_end)
    orchestrator.on_file_error(display.on_file_error)
    orchestrator.on_file_cancelled(display.on_file_cancelled)
    orchestrator.on_folder_created(display.on_folder_created)

    try:
        result: UploadResult = await orchestrator.upload_paths(config, paths)
    except UploadError as exc:
        display.stop()
        raise CLIError(f"upload failed [{exc.code.value}]: {exc.message}") from exc
    except asyncio.CancelledError:
        config.controller.cancel()
        display.stop()
        raise

    display.on_finish(result)

    if output is not None:
        try:
            output.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        except OSError as exc:
            raise CLIError(f"could not write result to {output}: {exc}") from exc

    errors = result.get_errors()
    for error in errors:
        print(f"ERROR: [{error.code.value}] {error.message}", file=sys.stderr)
    return 1 if errors else 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aem-upload",
        description="Upload local files and folders to AEM Assets using direct binary upload.",
    )
    parser.add_argument("paths", nargs="*", type=Path, help="Files or folders to upload")
    parser.add_argument(
        "-t",
        "--target",
        default=None,
        help=f"Full URL of the target folder (default from {TARGET_URL_ENV})",
    )
    parser.add_argument(
        "-u",
        "--credentials",
        default=None,
        help=f"Basic auth credentials as user:password (default from {CREDENTIALS_ENV})",
    )
    parser.add_argument(
        "--proxy",
        default=None,
        help=f"HTTP proxy url for all requests (default from {PROXY_ENV})",
    )
    parser.add_argument(
        "-d",
        "--deep",
        action="store_true",
        help="Recreate folder hierarchies instead of uploading folder contents flat",
    )
    parser.add_argument("--serial", action="store_true", help="Upload one part at a time")
    parser.add_argument(
        "--max-concurrent",
        type=int,
        default=DEFAULT_MAX_CONCURRENT,
        help=f"Maximum concurrent requests (default {DEFAULT_MAX_CONCURRENT})",
    )
    parser.add_argument(
        "--max-files",
        type=int,
        default=DEFAULT_MAX_UPLOAD_FILES,
        help=f"Maximum number of files to upload (default {DEFAULT_MAX_UPLOAD_FILES})",
    )
    parser.add_argument(
        "--max-paths",
        type=int,
        default=DEFAULT_MAX_PATHS,
        help=f"Maximum number of paths to walk per folder (default {DEFAULT_MAX_PATHS})",
    )
    parser.add_argument("--retry-count", type=int, default=3, help="HTTP attempts per request")
    parser.add_argument(
        "--retry-delay",
        type=float,
        default=5.0,
        help="Seconds before the first retry, doubled for each further retry",
    )
    parser.add_argument(
        "--replace-value",
        default="-",
        help="Character that replaces invalid characters in node names",
    )
    parser.add_argument(
        "--replace",
        action="store_true",
        help="Replace existing assets instead of failing on them",
    )
    parser.add_argument(
        "--create-version",
        action="store_true",
        help="Create a new version of existing assets (takes precedence over --replace)",
    )
    parser.add_argument("--version-label", default=None, help="Label for created versions")
    parser.add_argument("--version-comment", default=None, help="Comment for created versions")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write the JSON upload result to this file",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--no-progress", action="store_true", help="Do not render progress bars")
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"aem-upload {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.paths:
        parser.print_help()
        return 0

    paths = [Path(p).expanduser() for p in args.paths]
    missing = [p for p in paths if not p.exists()]
    if missing:
        print(f"ERROR: path does not exist: {missing[0]}", file=sys.stderr)
        return 1

    try:
        config = _build_config(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    show_progress = not args.silent and not args.no_progress
    if show_progress:
        render_configuration_summary(
            {
                "Paths": ", ".join(str(p) for p in paths),
                "Target": config.url,
                "Mode": "deep" if config.deep_upload else "flat",
                "Concurrency": config.max_concurrent if config.is_concurrent else "serial",
                "Auth": "basic" if "Authorization" in config.headers else "none",
                "Proxy": config.http_proxy or "-",
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        return asyncio.run(_run_upload(config, paths, args.output, show_progress))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
