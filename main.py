#!/usr/bin/env python3
"""Main entry point for whoosh2garmin."""

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

from config import settings
from analyzers.activity_corrector import fix_fit_file
from analyzers.activity_inspector import format_inspection
from clients.garmin_client import GarminClient
from clients.token_store import TokenStore
from parsers.fit_codec import decode_activity
from sync import SyncRunner, SyncSummary
from utils.errors import DuplicateError, Whoosh2GarminError
from utils.file_discovery import find_most_recent_fit_file, generate_output_filename


def setup_logging(verbose: bool = False, log_file: Optional[str] = settings.LOG_FILE):
    """Set up logging configuration.

    Args:
        verbose: Enable verbose logging
        log_file: Also write the log to this file when set
    """
    level = logging.DEBUG if verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=settings.LOG_FORMAT, handlers=handlers)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Fix MyWhoosh activity files and upload them to Garmin Connect',
        formatter_class=argparse.RawTextHelpFormatter,
        epilog=(
            'Examples:\n'
            '  %(prog)s sync --directory ~/MyWhoosh/Data\n'
            '  %(prog)s fix MyNewActivity-3.8.5.fit --output fixed.fit\n'
            '  %(prog)s upload fixed.fit\n'
            '  %(prog)s inspect fixed.fit\n'
            '  %(prog)s config --show'
        )
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--token-dir', type=str, default=str(settings.TOKEN_DIR),
        help='Directory holding cached Garmin tokens'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    sync_parser = subparsers.add_parser('sync', help='Fix and upload every unsynced activity')
    sync_parser.add_argument(
        '--directory', '-d', type=str, help='MyWhoosh activity directory (default: $MYWHOOSH_DIR)'
    )
    sync_parser.add_argument(
        '--days', type=int, default=settings.SYNC_WINDOW_DAYS,
        help='Only consider files modified within this many days'
    )

    fix_parser = subparsers.add_parser('fix', help='Fix a single activity file locally')
    fix_parser.add_argument(
        'file', nargs='?', help='FIT file to fix (default: most recent MyNewActivity-*.fit)'
    )
    fix_parser.add_argument('--directory', '-d', type=str, help='Directory searched when no file is given')
    fix_parser.add_argument('--output', '-o', type=str, help='Output path for the fixed file')

    upload_parser = subparsers.add_parser('upload', help='Upload an already fixed FIT file')
    upload_parser.add_argument('file', help='FIT file to upload')

    subparsers.add_parser('login', help='Log in to Garmin Connect and cache the tokens')

    inspect_parser = subparsers.add_parser('inspect', help='Show device identity and session averages')
    inspect_parser.add_argument('file', help='FIT file to inspect')
    inspect_parser.add_argument('--records', type=int, default=5, help='Number of records to show')

    config_parser = subparsers.add_parser('config', help='Manage configuration')
    config_parser.add_argument(
        '--show', action='store_true', help='Show current configuration'
    )

    return parser.parse_args(argv)


class Whoosh2Garmin:
    """Main application class."""

    def __init__(self, token_dir: Optional[str] = None):
        """Initialize the application."""
        self.settings = settings
        self.token_store = TokenStore(token_dir or settings.TOKEN_DIR)
        self.client = GarminClient(token_store=self.token_store, domain=settings.GARMIN_DOMAIN)

    def _credentials(self) -> Tuple[Optional[str], Optional[str]]:
        try:
            return self.settings.get_garmin_credentials()
        except ValueError:
            if not sys.stdin.isatty():
                return None, None
            email = input('Garmin email: ').strip()
            password = getpass.getpass('Garmin password: ')
            return email, password

    def sync(self, args: argparse.Namespace) -> SyncSummary:
        directory = self.settings.get_mywhoosh_dir(getattr(args, 'directory', None))
        if directory is None:
            raise ValueError('Set the MyWhoosh directory with --directory or MYWHOOSH_DIR')
        if not directory.is_dir():
            raise FileNotFoundError(f'Directory not found: {directory}')

        runner = SyncRunner(self.client)
        return runner.sync_directory(directory, credentials=self._credentials, days=args.days)

    def fix(self, args: argparse.Namespace) -> Path:
        if args.file:
            input_path = Path(args.file)
        else:
            directory = self.settings.get_mywhoosh_dir(args.directory)
            if directory is None:
                raise ValueError('Give a FIT file or set --directory / MYWHOOSH_DIR')
            input_path = find_most_recent_fit_file(directory)
            logging.info(f'Most recent activity: {input_path.name}')

        output_path = Path(args.output) if args.output else input_path.with_name(
            generate_output_filename(input_path))
        fix_fit_file(input_path, output_path)
        logging.info(f'Fixed file written to {output_path}')
        return output_path

    def login(self):
        email, password = self._credentials()
        if not email or not password:
            raise ValueError('Garmin email and password are required')
        self.client.login(email, password)
        logging.info(f'Tokens cached in {self.token_store.directory}')

    def upload(self, args: argparse.Namespace):
        if not self.client.resume():
            self.login()
        try:
            self.client.upload(Path(args.file))
            logging.info('Uploaded')
        except DuplicateError:
            logging.info('Already on Garmin Connect')

    def inspect(self, args: argparse.Namespace) -> str:
        activity = decode_activity(Path(args.file))
        report = format_inspection(activity, max_records=args.records)
        print(report)
        return report

    def show_config(self):
        """Display current configuration."""
        logging.info("Current Configuration:")
        logging.info("-" * 30)
        config_dict = {
            'GARMIN_DOMAIN': self.settings.GARMIN_DOMAIN,
            'GARMIN_EMAIL': self.settings.GARMIN_EMAIL or 'N/A',
            'MYWHOOSH_DIR': self.settings.get_mywhoosh_dir() or 'N/A',
            'TOKEN_DIR': self.token_store.directory,
            'SYNC_WINDOW_DAYS': self.settings.SYNC_WINDOW_DAYS,
        }
        for key, value in config_dict.items():
            logging.info(f"{key}: {value}")


def main(argv=None):
    """Main application entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    if not args.command:
        parse_args(['--help'])
        return

    try:
        app = Whoosh2Garmin(token_dir=args.token_dir)

        if args.command == 'sync':
            summary = app.sync(args)
            if summary.skipped:
                sys.exit(2)
        elif args.command == 'fix':
            app.fix(args)
        elif args.command == 'upload':
            app.upload(args)
        elif args.command == 'login':
            app.login()
        elif args.command == 'inspect':
            app.inspect(args)
        elif args.command == 'config':
            app.show_config()

    except (Whoosh2GarminError, ValueError, FileNotFoundError) as e:
        logging.error(f"Error: {e}")
        if args.verbose:
            logging.exception("Full traceback:")
        sys.exit(1)


if __name__ == '__main__':
    main()
