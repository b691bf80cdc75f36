"""
Command Line Interface for batch transfers.
"""

import argparse
import asyncio
import logging
from typing import List, Optional

from .api_client import AssetApiClient
from .batch_export import BatchExporter, ExportItem
from .batch_upload import BatchUploader
from .config import TransferConfig
from .errors import JobConfigError, TransferError
from .job_config import UploadJobEntry, load_job_config
from .progress import LoggingObserver, TransferObserver
from .transfer_stats import ExportStats, UploadStats


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    return logging.getLogger('transfer')


def get_config(args: argparse.Namespace) -> TransferConfig:
    """Get configuration from environment and CLI overrides."""
    config = TransferConfig.from_env()

    if getattr(args, 'api_url', None):
        config.api_base_url = args.api_url
    if getattr(args, 'concurrency', None):
        config.concurrency = args.concurrency
    if getattr(args, 'timeout', None):
        config.timeout = args.timeout

    return config


def get_observer(args: argparse.Namespace, logger: logging.Logger) -> TransferObserver:
    return TransferObserver() if args.quiet else LoggingObserver(logger)


async def run_upload(
    config: TransferConfig,
    entries: List[UploadJobEntry],
    folder: Optional[str],
    observer: TransferObserver,
    logger: logging.Logger
) -> UploadStats:
    async with AssetApiClient(config.api_base_url, timeout=config.timeout, logger=logger) as api:
        uploader = BatchUploader(api, concurrency=config.concurrency, folder=folder, logger=logger)
        return await uploader.run(entries, observer)


async def run_export(
    config: TransferConfig,
    destination: str,
    folder: Optional[str],
    mime_type: Optional[str],
    ids: Optional[List[str]],
    observer: TransferObserver,
    logger: logging.Logger
) -> ExportStats:
    async with AssetApiClient(config.api_base_url, timeout=config.timeout, logger=logger) as api:
        records = await api.list_all_assets(folder=folder, mime_type=mime_type)
        if ids:
            wanted = set(ids)
            records = [r for r in records if r.get('id') in wanted]
            missing = wanted - {r.get('id') for r in records}
            for asset_id in sorted(missing):
                logger.warning(f"Image not found: {asset_id}")

        items = [ExportItem.from_record(r) for r in records]
        logger.info(f"Exporting {len(items)} images to {destination}")
        exporter = BatchExporter(api, concurrency=config.concurrency, logger=logger)
        return await exporter.run(items, destination, observer)


def _load_config(args: argparse.Namespace, logger: logging.Logger) -> Optional[TransferConfig]:
    config = get_config(args)
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        return None
    return config


def cmd_upload(args: argparse.Namespace) -> int:
    """Execute upload command."""
    logger = setup_logging(args.verbose)
    config = _load_config(args, logger)
    if config is None:
        return 1

    try:
        entries = load_job_config(args.config)
    except JobConfigError as e:
        logger.error(str(e))
        return 1

    logger.info(f"Server: {config.api_base_url}")
    logger.info(f"Job: {args.config} ({len(entries)} folders)")

    try:
        stats = asyncio.run(run_upload(config, entries, args.folder, get_observer(args, logger), logger))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except TransferError as e:
        logger.error(f"Upload failed: {e}")
        return 1

    if not args.quiet:
        print()
        print(f"Uploaded: {stats.succeeded}")
        print(f"Failed: {stats.failed} ({stats.duplicates} duplicates)")
        print(f"Size: {stats.total_mb:.2f} MB")
        print(f"Time: {stats.elapsed_seconds:.1f}s")

    return 0 if stats.failed == 0 else 1


def cmd_export(args: argparse.Namespace) -> int:
    """Execute export command."""
    logger = setup_logging(args.verbose)
    config = _load_config(args, logger)
    if config is None:
        return 1

    logger.info(f"Server: {config.api_base_url}")

    try:
        stats = asyncio.run(run_export(
            config,
            args.dest,
            args.folder,
            args.mimetype,
            args.id,
            get_observer(args, logger),
            logger,
        ))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except (TransferError, OSError) as e:
        logger.error(f"Export failed: {e}")
        return 1

    if not args.quiet:
        print()
        print(f"Downloaded: {stats.succeeded}")
        print(f"Failed: {stats.failed}")
        print(f"Time: {stats.elapsed_seconds:.1f}s")

    return 0 if stats.failed == 0 else 1


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add server and output arguments to a parser."""
    server_group = parser.add_argument_group('Server')
    server_group.add_argument('--api-url', help='Override API_BASE_URL')
    server_group.add_argument('--concurrency', type=int, help='Override TRANSFER_CONCURRENCY (default: 5)')
    server_group.add_argument('--timeout', type=float, help='Override TRANSFER_TIMEOUT in seconds')

    parser.add_argument('-q', '--quiet', action='store_true', help='Suppress progress output')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='transfer',
        description='Batch upload and export for the image asset server',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m transfer upload --config job.json
  python -m transfer export --dest ./export --folder specimens

Job file format:
  [{"folderPath": "/data/photos", "extensions": ["jpg", "png"]}]
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    upload_parser = subparsers.add_parser('upload', help='Upload every matching file of a job file')
    upload_parser.add_argument('-c', '--config', required=True, help='JSON job file')
    upload_parser.add_argument('--folder', help='Server folder to upload into')
    add_common_arguments(upload_parser)

    export_parser = subparsers.add_parser('export', help='Download images into a local directory')
    export_parser.add_argument('-d', '--dest', required=True, help='Destination directory')
    export_parser.add_argument('--folder', help='Only export this server folder')
    export_parser.add_argument('--mimetype', help='Only export this mime type')
    export_parser.add_argument('--id', action='append', help='Image id to export (repeatable)')
    add_common_arguments(export_parser)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'upload':
        return cmd_upload(parsed_args)
    elif parsed_args.command == 'export':
        return cmd_export(parsed_args)

    return 1
