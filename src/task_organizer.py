#!/usr/bin/env python3
"""
TaskOrganizer

Command-line helper around a TickTick / Dida365 account that:
1. Prints a daily/weekly digest (live API or TickTickSync cache)
2. Detects near-duplicate tasks and optionally deletes the extras
3. Merges WeChat-captured split tasks and classifies them as action/material

All planning happens in the pure `reconcile` package; this module owns
config, logging, I/O and plan execution.
"""

import sys
import copy
import logging
import argparse
from pathlib import Path
from typing import Dict, List, Any, Optional, Tuple

import yaml

from digest import assert_date, build_digest, today_in_tz, DEFAULT_THOUGHT_KEYWORDS
from reconcile import (
    CanonicalTask, ClassificationRules, DuplicateGroup, MergePlan,
    build_wechat_plan, detect_duplicates, normalize_tasks,
)
from reconcile.normalize import extract_sync_tasks, map_projects
from reports import render_dedupe_md, render_digest_md, render_json, render_wechat_md

COMMANDS = ['digest', 'dedupe', 'wechat', 'cache-digest']

DEFAULT_CONFIG: Dict[str, Any] = {
    'timezone': 'Asia/Shanghai',
    'tickticksync': {
        'data_file': None,
        'vault_path': None,
    },
    'ticktick': {
        'timeout': 30,
        'checkpoint': 0,
    },
    'digest': {
        'days': 7,
        'limit': 20,
        'thought_keywords': list(DEFAULT_THOUGHT_KEYWORDS),
    },
    'dedupe': {
        'scope': 'inbox',
        'window_hours': 12,
    },
    'wechat': {
        'window_seconds': 180,
        'preview_limit': 30,
    },
    'logging': {
        'level': 'INFO',
    },
}


def merge_config(base: Dict[str, Any], override: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Deep-merge override into a copy of base"""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def require_positive(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"{name} must be a positive number")


class TaskOrganizer:
    """
    Application object tying config, integrations and the reconcile core together

    Integrations are created lazily so cache-only commands never need
    network credentials.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        sync_data_path: Optional[str] = None,
        client: Optional[Any] = None,
        verbose: bool = False
    ):
        """
        Initialize TaskOrganizer

        Args:
            config_path: YAML config file (default: <project>/config/config.yaml)
            sync_data_path: TickTickSync data.json path, overrides config
            client: Pre-built TickTick client (used by tests)
            verbose: Log at DEBUG level
        """
        self.logger = self._setup_logging()
        self.project_root = self._detect_project_root()
        self.config = self._load_config(config_path)

        level = 'DEBUG' if verbose else str(self.config['logging'].get('level', 'INFO')).upper()
        self.logger.setLevel(getattr(logging, level, logging.INFO))

        from integrations import TickTickSyncIntegration

        self._tickticksync = TickTickSyncIntegration(self.config['tickticksync'], data_file=sync_data_path)
        self._client = client
        self._ticktick = None
        self.rules = ClassificationRules.from_config(self.config['wechat'])

        self.logger.debug("TaskOrganizer initialized")

    def _setup_logging(self) -> logging.Logger:
        """Setup logging for the organizer"""
        logger = logging.getLogger("TaskOrganizer")

        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - TaskOrganizer - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.setLevel(logging.INFO)

        return logger

    def _detect_project_root(self) -> Path:
        """Detect project root directory"""
        current_path = Path(__file__).resolve()

        for parent in current_path.parents:
            if (parent / 'pyproject.toml').exists():
                return parent

        return Path.cwd()

    def _load_config(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from YAML file merged over DEFAULT_CONFIG

        An explicit path must exist. A missing default config is tolerated.
        """
        if config_path is None:
            default_path = self.project_root / 'config' / 'config.yaml'
            if not default_path.exists():
                self.logger.warning(f"No config at {default_path}, using built-in defaults")
                return merge_config(DEFAULT_CONFIG, None)
            config_path = default_path
        else:
            config_path = Path(config_path).expanduser()

        if not config_path.exists():
            example_config = self.project_root / 'config' / 'config.example.yaml'
            if example_config.exists():
                self.logger.warning(
                    f"Config not found at {config_path}. "
                    f"Please copy {example_config} to {config_path} and customize."
                )
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f) or {}

        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")

        self.logger.info(f"Loaded config from {config_path}")
        return merge_config(DEFAULT_CONFIG, loaded)

    @property
    def data_file(self) -> Path:
        return self._tickticksync.data_file

    @property
    def ticktick(self):
        """Live API integration, built on first use from TickTickSync credentials"""
        if self._ticktick is None:
            from integrations import TickTickIntegration

            if self._client is not None:
                credentials = {}
            else:
                credentials = self._tickticksync.get_credentials()
            self._ticktick = TickTickIntegration(self.config['ticktick'], credentials, client=self._client)

        return self._ticktick

    # ==================== Snapshot Loading ====================

    def load_live_tasks(self, tz_name: str) -> Tuple[Dict[str, Any], List[CanonicalTask]]:
        """
        Fetch a consistent snapshot from the API and normalize it

        Returns:
            (meta, tasks) where meta describes user/server/checkpoint
        """
        integration = self.ticktick
        snapshot = integration.fetch_snapshot()

        status = snapshot['status'] if isinstance(snapshot['status'], dict) else {}
        projects = snapshot['projects'] if isinstance(snapshot['projects'], list) else []
        sync = snapshot['sync'] if isinstance(snapshot['sync'], dict) else {}

        raw_tasks = extract_sync_tasks(sync)
        base_url = integration.client.base_url
        inbox_id = status.get('inboxId') or integration.credentials.get('inboxID')

        tasks = normalize_tasks(raw_tasks, map_projects(projects), inbox_id, base_url, tz_name)
        self.logger.info(f"Loaded {len(tasks)} tasks from TickTick")

        meta = {
            'config_path': str(self.data_file),
            'base_url': base_url,
            'user': status.get('username') or 'unknown',
            'checkpoint': sync.get('checkPoint'),
            'tz': tz_name,
        }
        return meta, tasks

    def load_cached_tasks(self, tz_name: str) -> Tuple[Dict[str, Any], List[CanonicalTask]]:
        """Read tasks from TickTickSync's offline cache (no network)"""
        snapshot = self._tickticksync.get_cached_snapshot()
        tasks = normalize_tasks(
            snapshot['tasks'],
            map_projects(snapshot['projects']),
            snapshot['inbox_id'],
            snapshot['base_url'],
            tz_name,
        )
        meta = {
            'source': str(self.data_file),
            'base_url': snapshot['base_url'],
            'tz': tz_name,
        }
        return meta, tasks

    # ==================== Core Methods ====================

    def build_digest(self, tasks: List[CanonicalTask], today: str, days: int) -> Dict[str, Any]:
        digest = build_digest(tasks, today, days, self.config['digest'].get('thought_keywords'))
        self.logger.info(
            f"Digest {digest['today']}..{digest['end']}: "
            f"{digest['counts']['total_todo']} open tasks"
        )
        return digest

    def find_duplicates(self, tasks: List[CanonicalTask], scope: str, window_hours: float) -> List[DuplicateGroup]:
        """Run duplicate detection over a snapshot"""
        self.logger.info(f"Detecting duplicates (scope={scope}, window={window_hours}h)...")
        return detect_duplicates(tasks, scope=scope, window_hours=window_hours)

    def plan_wechat(self, tasks: List[CanonicalTask], window_seconds: float) -> MergePlan:
        """Plan marker merges and classification for WeChat captures"""
        self.logger.info(f"Planning WeChat organization (window={window_seconds}s)...")
        return build_wechat_plan(tasks, window_seconds=window_seconds, rules=self.rules)

    # ==================== Plan Execution ====================

    def apply_duplicates(self, groups: List[DuplicateGroup]) -> int:
        """
        Delete every non-keeper in one batch call

        Returns:
            Number of tasks deleted
        """
        to_delete = [task for group in groups for task in group.remove]
        if not to_delete:
            self.logger.info("Nothing to delete")
            return 0
        return self.ticktick.delete_tasks(to_delete)

    def apply_wechat_plan(self, plan: MergePlan) -> Dict[str, int]:
        """
        Apply a WeChat plan: updates first, then marker deletes

        A failed call propagates; the run stops and must be redone from a
        fresh snapshot.

        Returns:
            Dict with 'updated' and 'deleted' counts
        """
        applied = {'updated': 0, 'deleted': 0}
        if plan.update_tasks:
            applied['updated'] = self.ticktick.update_tasks(plan.update_tasks)
        if plan.delete_tasks:
            applied['deleted'] = self.ticktick.delete_tasks(plan.delete_tasks)
        return applied


# ==================== CLI Interface ====================

COMMANDS_HELP = """Commands:
  digest        read tasks directly from TickTick/Dida API and print digest
  dedupe        detect near-duplicate tasks (default dry-run), optional apply delete
  wechat        merge WeChat-captured split tasks and classify into action/material
  cache-digest  TickTick digest from TickTickSync cache (no network)
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='task-organizer',
        description="TaskOrganizer: TickTick digest, dedupe and WeChat organizer",
        epilog=COMMANDS_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        'command',
        nargs='?',
        default='digest',
        choices=COMMANDS,
        help='Command to execute (default: digest)'
    )
    parser.add_argument(
        '--config',
        help='Path to YAML config file'
    )
    parser.add_argument(
        '--sync-data', '--source',
        dest='sync_data',
        help='Path to TickTickSync data.json (default: auto detect)'
    )
    parser.add_argument(
        '--date',
        help='Digest anchor date YYYY-MM-DD (default: today in --tz)'
    )
    parser.add_argument(
        '--days',
        type=int,
        help='Digest future window days (default: 7)'
    )
    parser.add_argument(
        '--format',
        choices=['md', 'json'],
        default='md',
        help='Output format (default: md)'
    )
    parser.add_argument(
        '--limit',
        type=int,
        help='Max rows per section in md output (default: 20)'
    )
    parser.add_argument(
        '--tz',
        help='IANA timezone for date bucketing (default from config)'
    )
    parser.add_argument(
        '--scope',
        choices=['inbox', 'all'],
        help='Dedupe scope (default: inbox)'
    )
    parser.add_argument(
        '--window-hours',
        type=float,
        help='Dedupe time window by modifiedTime (default: 12)'
    )
    parser.add_argument(
        '--window-seconds',
        type=float,
        help='WeChat merge window by task create time (default: 180)'
    )
    parser.add_argument(
        '--apply',
        action='store_true',
        help='Apply dedupe/wechat plan to TickTick'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Debug logging'
    )
    return parser


def _pick(value: Any, default: Any) -> Any:
    return default if value is None else value


def run(args: argparse.Namespace, client: Optional[Any] = None) -> int:
    """Execute one parsed command; exceptions propagate to main()"""
    organizer = TaskOrganizer(
        config_path=args.config,
        sync_data_path=args.sync_data,
        client=client,
        verbose=args.verbose,
    )
    config = organizer.config

    tz_name = _pick(args.tz, config['timezone'])
    days = _pick(args.days, config['digest']['days'])
    limit = _pick(args.limit, config['digest']['limit'])
    scope = _pick(args.scope, config['dedupe']['scope'])
    window_hours = _pick(args.window_hours, config['dedupe']['window_hours'])
    window_seconds = _pick(args.window_seconds, config['wechat']['window_seconds'])

    require_positive(days, '--days')
    require_positive(limit, '--limit')
    require_positive(window_hours, '--window-hours')
    require_positive(window_seconds, '--window-seconds')
    if scope not in ('inbox', 'all'):
        raise ValueError("--scope must be inbox or all")

    if args.command in ('digest', 'cache-digest'):
        today = assert_date(args.date) if args.date else today_in_tz(tz_name)
        live = args.command == 'digest'
        if live:
            meta, tasks = organizer.load_live_tasks(tz_name)
        else:
            meta, tasks = organizer.load_cached_tasks(tz_name)

        digest = organizer.build_digest(tasks, today, days)
        if args.format == 'json':
            print(render_json({'meta': meta, 'digest': digest}))
        else:
            print(render_digest_md(meta, digest, limit, live=live), end='')
        return 0

    meta, tasks = organizer.load_live_tasks(tz_name)

    if args.command == 'dedupe':
        groups = organizer.find_duplicates(tasks, scope, window_hours)
        deleted_count = 0
        if args.apply and groups:
            deleted_count = organizer.apply_duplicates(groups)

        if args.format == 'json':
            print(render_json({
                'meta': meta,
                'apply': args.apply,
                'groups': groups,
                'deleted_count': deleted_count,
            }))
        else:
            print(render_dedupe_md(meta, groups, args.apply, deleted_count), end='')
        return 0

    plan = organizer.plan_wechat(tasks, window_seconds)
    applied = {'updated': 0, 'deleted': 0}
    if args.apply:
        applied = organizer.apply_wechat_plan(plan)

    if args.format == 'json':
        print(render_json({'meta': meta, 'apply': args.apply, 'plan': plan, 'applied': applied}))
    else:
        limit_preview = config['wechat'].get('preview_limit', 30)
        print(render_wechat_md(meta, plan, args.apply, applied, limit=limit_preview), end='')
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return run(args)
    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
