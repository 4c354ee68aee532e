"""
CLI main entry point.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from ..archive import AssemblyError
from ..catalog_client import ApiError
from ..config import (
    Config,
    build_catalog_client,
    build_export_pipeline,
    create_default_config,
    load_config,
)
from ..preview import classify, preview_message
from ..retrieval import RetrievalFailure
from ..schemas import (
    SearchFilter,
    ValidationError,
    build_upload_entry,
    normalize,
)
from ..services import PipelineError

logger = logging.getLogger(__name__)

TOKEN_ENV = "DOCBUNDLE_TOKEN"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--category", type=str, help="Personal or Professional")
    parser.add_argument("--subcategory", type=str, help="Subcategory within the category")
    parser.add_argument(
        "--from", dest="date_from", type=str, help="From date (YYYY-MM-DD or DD-MM-YYYY)"
    )
    parser.add_argument(
        "--to", dest="date_to", type=str, help="To date (YYYY-MM-DD or DD-MM-YYYY)"
    )
    parser.add_argument(
        "--tag",
        dest="tags",
        action="append",
        default=[],
        help="Tag to match (repeatable)",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="docbundle",
        description="Search, download and export documents from the document catalog",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("docbundle.yaml"),
        help="Path to config file (default: docbundle.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help=f"Session token (default: ${TOKEN_ENV})",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument(
        "--force", action="store_true", help="Overwrite an existing config file"
    )

    # otp / login commands
    otp_parser = subparsers.add_parser("otp", help="Request a one-time login code")
    otp_parser.add_argument("mobile", type=str, help="Mobile number")

    login_parser = subparsers.add_parser("login", help="Exchange a one-time code for a token")
    login_parser.add_argument("mobile", type=str, help="Mobile number")
    login_parser.add_argument("otp", type=str, help="One-time code")

    # tags command
    tags_parser = subparsers.add_parser("tags", help="Suggest tags for a partial term")
    tags_parser.add_argument("term", type=str, help="Partial tag (at least 2 characters)")

    # search command
    search_parser = subparsers.add_parser("search", help="Search the catalog")
    _add_filter_arguments(search_parser)

    # preview command
    preview_parser = subparsers.add_parser(
        "preview", help="Show how file paths would be previewed"
    )
    preview_parser.add_argument("paths", nargs="+", help="Remote paths or file names")

    # download command
    download_parser = subparsers.add_parser(
        "download", help="Download one document from a search result"
    )
    download_parser.add_argument("doc_id", type=str, help="Document ID")
    _add_filter_arguments(download_parser)
    download_parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory to save into (default: current directory)",
    )

    # export command
    export_parser = subparsers.add_parser(
        "export", help="Search and export every match as one ZIP"
    )
    _add_filter_arguments(export_parser)
    export_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Archive path (default: archive.output_name in the current directory)",
    )

    # upload command
    upload_parser = subparsers.add_parser("upload", help="Upload a document")
    upload_parser.add_argument("file", type=Path, help="File to upload")
    upload_parser.add_argument("--date", required=True, help="Document date")
    upload_parser.add_argument("--category", required=True, help="Personal or Professional")
    upload_parser.add_argument("--subcategory", required=True, help="Subcategory")
    upload_parser.add_argument(
        "--tag", dest="tags", action="append", default=[], help="Tag (repeatable)"
    )
    upload_parser.add_argument("--remarks", default="", help="Free-text remarks")
    upload_parser.add_argument("--user-id", required=True, help="Uploading user ID")
    upload_parser.add_argument("--mime-type", default=None, help="Content type of the file")

    return parser


def _filter_from_args(parsed: argparse.Namespace) -> SearchFilter:
    return normalize(
        {
            "category": parsed.category,
            "subcategory": parsed.subcategory,
            "date_from": parsed.date_from,
            "date_to": parsed.date_to,
            "tags": parsed.tags,
        }
    )


def cmd_init_config(config_path: Path, force: bool) -> int:
    """Write a default config file."""
    if config_path.exists() and not force:
        print(f"❌ {config_path} already exists (use --force to overwrite)")
        return 1
    create_default_config(config_path)
    print(f"✓ Wrote {config_path}")
    return 0


def cmd_otp(config: Config, mobile: str) -> int:
    """Request a one-time code."""
    build_catalog_client(config).generate_otp(mobile)
    print(f"✓ One-time code sent to {mobile}")
    return 0


def cmd_login(config: Config, mobile: str, otp: str) -> int:
    """Exchange a one-time code for a token."""
    session = build_catalog_client(config).validate_otp(mobile, otp)
    print(f"✓ Logged in as {session.user_id}")
    print(f"  export {TOKEN_ENV}={session.token}")
    return 0


def cmd_tags(config: Config, token: str, term: str) -> int:
    """Print tag suggestions."""
    for tag in build_catalog_client(config).suggest_tags(term, token):
        print(f"  🏷  {tag}")
    return 0


def cmd_search(config: Config, token: str, search_filter: SearchFilter) -> int:
    """Search and list results."""
    print("🔍 Searching catalog...")
    records = build_catalog_client(config).search(search_filter, token)

    for record in records:
        tags = ", ".join(record.tags) or "-"
        kind = classify(record)
        print(f"  📄 [{record.id}] {record.subcategory} - {record.document_date} - {record.remarks}")
        print(f"     Tags: {tags} | Preview: {kind.value} | {record.filename}")

    print(f"\n✓ Found {len(records)} document(s)")
    return 0


def cmd_preview(paths: list[str]) -> int:
    """Classify paths for preview."""
    for path in paths:
        kind = classify(path)
        message = preview_message(kind)
        print(f"  {path}: {kind.value}" + (f" ({message})" if message else ""))
    return 0


def cmd_download(
    config: Config,
    token: str,
    search_filter: SearchFilter,
    doc_id: str,
    output_dir: Path,
) -> int:
    """Download one document from a search result."""
    pipeline = build_export_pipeline(config)
    records = pipeline.catalog.search(search_filter, token)
    record = next((r for r in records if r.id == doc_id), None)
    if record is None:
        print(f"❌ Document {doc_id} is not in the search result")
        return 1

    outcome = pipeline.download_one(record, token)
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / (outcome.filename or f"document_{doc_id}")
    target.write_bytes(outcome.read_payload())
    print(f"✓ Saved {target}")
    return 0


def cmd_export(
    config: Config, token: str, search_filter: SearchFilter, output: Path | None
) -> int:
    """Search and export every match as one archive."""
    print("📦 Exporting documents...")
    pipeline = build_export_pipeline(config)
    result = pipeline.export_all(search_filter, token)

    target = output or Path(result.archive.filename)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(result.archive.data)

    print(f"✓ Exported {result.exported}/{result.total} document(s) to {target}")
    if result.skipped:
        print("⚠️  Skipped:")
        for item in result.skipped:
            print(f"   - [{item.document_id}] {item.reason}")
    return 0


def cmd_upload(config: Config, token: str, parsed: argparse.Namespace) -> int:
    """Upload a document with metadata."""
    if not parsed.file.is_file():
        print(f"❌ File not found: {parsed.file}")
        return 1

    entry = build_upload_entry(
        document_date=parsed.date,
        category=parsed.category,
        subcategory=parsed.subcategory,
        tags=parsed.tags,
        user_id=parsed.user_id,
        remarks=parsed.remarks,
    )
    build_catalog_client(config).upload_document(
        parsed.file, entry, token, mime_type=parsed.mime_type
    )
    print(f"✓ Uploaded {parsed.file.name}")
    return 0


def _run(parsed: argparse.Namespace, config: Config) -> int:
    if parsed.command == "otp":
        return cmd_otp(config, parsed.mobile)
    if parsed.command == "login":
        return cmd_login(config, parsed.mobile, parsed.otp)
    if parsed.command == "preview":
        return cmd_preview(parsed.paths)

    token = parsed.token or os.environ.get(TOKEN_ENV, "")
    if not token:
        print(f"❌ A token is required (use --token or set {TOKEN_ENV})")
        return 1

    if parsed.command == "tags":
        return cmd_tags(config, token, parsed.term)
    elif parsed.command == "search":
        return cmd_search(config, token, _filter_from_args(parsed))
    elif parsed.command == "download":
        return cmd_download(
            config, token, _filter_from_args(parsed), parsed.doc_id, parsed.output_dir
        )
    elif parsed.command == "export":
        return cmd_export(config, token, _filter_from_args(parsed), parsed.output)
    elif parsed.command == "upload":
        return cmd_upload(config, token, parsed)
    return 1


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config, parsed.force)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    try:
        return _run(parsed, config)
    except ValidationError as e:
        print(f"❌ Invalid input: {e.detail}")
    except ApiError as e:
        print(f"❌ Catalog error: {e.detail}")
    except PipelineError as e:
        print(f"❌ Export failed: {e.detail}")
        for item in e.reasons:
            print(f"   - [{item.document_id}] {item.reason}")
    except AssemblyError as e:
        print(f"❌ Could not build archive: {e.detail}")
    except RetrievalFailure as e:
        print(f"❌ Download failed: {e.detail}")
    except KeyboardInterrupt:
        print("\n⚠️  Cancelled")
        return 130
    return 1


if __name__ == "__main__":
    sys.exit(main())
