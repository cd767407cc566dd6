#!/usr/bin/env python3
"""
Run the scheduled staging sweeps directly against Snowflake.

1. Expired sessions: auto-import every still-unsaved exercise from
   sessions past their 24-hour expiry.
2. New flags: clear the "New" badge on library exercises whose
   new-flag TTL has passed.

Meant for cron or a scheduled CI job; the same work is available over
HTTP at /api/v1/maintenance/*.

Usage:
    python scripts/run_sweeps.py
    python scripts/run_sweeps.py --only sessions
    python scripts/run_sweeps.py --dry-run

Requires:
    - .env file with Snowflake credentials
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from src.config.settings import get_settings
from src.core.staging.importer import ImportEngine
from src.core.staging.library_sweep import clear_expired_new_flags
from src.core.staging.lifecycle import SessionLifecycleManager
from src.core.staging.models import utc_now
from src.core.staging.quota import QuotaGuard
from src.infrastructure.snowflake.client import (
    SnowflakeConnectionError,
    create_snowflake_connection,
    snowflake_config_from_settings,
)
from src.infrastructure.snowflake.repositories import Repositories, create_repositories


def run_expired_sessions(repositories: Repositories, settings, dry_run: bool = False) -> bool:
    now = utc_now()
    if dry_run:
        expired = repositories.sessions.list_expired(now)
        print(f"Would process {len(expired)} expired sessions")
        for session in expired:
            print(
                f"  {session.id}: {len(session.uncommitted_indices())} of "
                f"{len(session.exercises)} exercises unsaved ({session.status.value})"
            )
        return True

    engine = ImportEngine(repositories.library, new_flag_ttl=settings.new_flag_ttl)
    manager = SessionLifecycleManager(
        sessions=repositories.sessions,
        extractor=None,
        quota=QuotaGuard(repositories.sessions, max_open=settings.max_open_sessions),
        importer=engine,
        session_ttl=settings.session_ttl,
    )
    report = manager.process_expired_sessions(now)

    print("\n=== Expired Sessions ===")
    print(f"Processed: {report.processed}")
    print(f"Exercises imported: {report.exercises_imported}")
    print(f"Failed: {report.failed}")
    return report.failed == 0


def run_clear_new_flags(repositories: Repositories, dry_run: bool = False) -> bool:
    if dry_run:
        print("Skipping new-flag sweep in dry run (it only clears flags)")
        return True

    names = clear_expired_new_flags(repositories.library)

    print("\n=== New Flags ===")
    print(f"Cleared: {len(names)}")
    for name in names:
        print(f"  {name}")
    return True


def main():
    parser = argparse.ArgumentParser(description='Run staging maintenance sweeps')
    parser.add_argument(
        '--only',
        choices=['sessions', 'flags'],
        help='Run just one sweep',
    )
    parser.add_argument('--dry-run', action='store_true', help='Report only, don\'t write')
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=settings.log_level.upper(),
    )

    if settings.snowflake_mock_mode:
        print("ERROR: SNOWFLAKE_MOCK_MODE is set; sweeps need a real database")
        sys.exit(1)

    try:
        config = snowflake_config_from_settings(settings)
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print(f"Connecting to Snowflake account: {config.account}")
    success = True
    try:
        with create_snowflake_connection(config=config) as conn:
            repositories = create_repositories(conn)
            if args.only in (None, 'sessions'):
                success = run_expired_sessions(repositories, settings, dry_run=args.dry_run) and success
            if args.only in (None, 'flags'):
                success = run_clear_new_flags(repositories, dry_run=args.dry_run) and success
    except SnowflakeConnectionError as e:
        print(f"ERROR connecting to Snowflake: {e}")
        sys.exit(1)

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
