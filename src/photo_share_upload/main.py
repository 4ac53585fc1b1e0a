from __future__ import annotations

import argparse
import os
from pathlib import Path
import sys

from . import __version__
from .config import ConfigManager
from .core import (
    CredentialManager,
    DuplicateDetector,
    HashIndex,
    ListingClient,
    MediaScanner,
    StaticTokenSupplier,
    TokenStore,
    UploadClient,
    UploadQueue,
)
from .models import ProgressEvent, ProgressEventType
from .utils import reporting, time_utils
from .utils.errors import UploadError

TOKEN_ENV_VAR = "PHOTO_SHARE_TOKEN"


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    print(f"photo-share-upload v{__version__}")
    if args.command is None:
        parser.print_help()
        return 2

    config = ConfigManager(Path(args.config) if args.config else None)
    errors = config.validate_config()
    if errors:
        for error in errors:
            print(f"設定錯誤: {error}", file=sys.stderr)
        return 2

    token = args.token or os.environ.get(TOKEN_ENV_VAR)
    if not token:
        print(f"缺少憑證：請使用 --token 或設定 {TOKEN_ENV_VAR}", file=sys.stderr)
        return 2

    if args.command == "upload":
        return _run_upload(args, config, token)
    if args.command == "check":
        return _run_check(args, config, token)
    return 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="photo-share-upload")
    parser.add_argument("--config", help="Path to config file", default=None)
    parser.add_argument("--token", help=f"Bearer token (default: ${TOKEN_ENV_VAR})", default=None)

    subparsers = parser.add_subparsers(dest="command")

    upload = subparsers.add_parser("upload", help="Upload new photos to an event")
    upload.add_argument("--source", required=True, help="Source folder")
    upload.add_argument("--event-id", required=True, help="Event ID")
    upload.add_argument("--report", help="Report output folder", default=None)

    check = subparsers.add_parser("check", help="Only check which photos are already uploaded")
    check.add_argument("--source", required=True, help="Source folder")
    check.add_argument("--event-id", required=True, help="Event ID")

    return parser


def _build_credential_manager(config: ConfigManager, token: str) -> CredentialManager:
    store = TokenStore(persist_path=config.get_path("auth.token_cache_path"))
    return CredentialManager(store, StaticTokenSupplier(token), config)


def _print_progress(event: ProgressEvent) -> None:
    if event.event_type == ProgressEventType.DUPLICATE_SKIPPED:
        print(f"略過 {event.item_id}（{event.reason}）")
    elif event.event_type == ProgressEventType.ITEM_RETRY:
        print(f"[{event.index}/{event.total}] 重試 {event.item_id}：{event.reason}")
    elif event.event_type == ProgressEventType.ITEM_DONE:
        suffix = f"（{event.reason}）" if event.reason else ""
        print(f"[{event.index}/{event.total}] {event.item_id}: {event.outcome}{suffix}")


def _run_upload(args: argparse.Namespace, config: ConfigManager, token: str) -> int:
    source_path = Path(args.source)
    items = MediaScanner(config).scan_directory(source_path)
    print(f"找到 {len(items)} 張照片")

    credential_manager = _build_credential_manager(config, token)
    hash_index = HashIndex(config)
    listing_client = ListingClient(config, credential_manager)
    queue = UploadQueue(
        config,
        credential_manager,
        UploadClient(config),
        DuplicateDetector(config, hash_index=hash_index, listing_client=listing_client),
        listing_client=listing_client,
    )
    try:
        result = queue.run_batch(items, event_id=args.event_id, progress_callback=_print_progress)
    except KeyboardInterrupt:
        queue.cancel()
        raise
    finally:
        credential_manager.shutdown(wait=False)

    print(reporting.build_summary_text(result, event_id=args.event_id), end="")
    report_root = Path(args.report) if args.report else source_path / f"Upload_{time_utils.get_timestamp_for_folder()}"
    report_dir = reporting.ensure_report_dir(report_root)
    reporting.write_batch_report(
        report_dir,
        result,
        queue.tasks,
        event_id=args.event_id,
        errors=queue.errors.errors,
    )
    print(f"Report written to: {report_dir}")
    return 0 if result.failed == 0 else 1


def _run_check(args: argparse.Namespace, config: ConfigManager, token: str) -> int:
    items = MediaScanner(config).scan_directory(Path(args.source))
    credential_manager = _build_credential_manager(config, token)
    detector = DuplicateDetector(
        config,
        listing_client=ListingClient(config, credential_manager),
    )
    try:
        result = detector.check_against_event(items, args.event_id)
    except UploadError as exc:
        print(f"無法取得已上傳列表: {exc.reason}", file=sys.stderr)
        return 1
    finally:
        credential_manager.shutdown(wait=False)

    for item in result.duplicates:
        print(f"已上傳 {item.item_id}（{result.matches[item.item_id].skip_reason}）")
    pending_bytes = sum(item.size_bytes for item in result.unique)
    print(
        f"伺服器已有 {result.remote_count} 筆；本機 {len(items)} 張中 "
        f"{len(result.duplicates)} 張重複，{len(result.unique)} 張待上傳"
        f"（{reporting.format_bytes_mb(pending_bytes)}）"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
