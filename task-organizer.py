#!/usr/bin/env python3
"""
task-organizer CLI

TickTick / Dida365 helper: digest, duplicate cleanup and WeChat capture
organizer.

Usage:
    ./task-organizer.py digest                  # Live digest from the API
    ./task-organizer.py cache-digest            # Digest from TickTickSync cache
    ./task-organizer.py dedupe                  # Dry-run duplicate detection
    ./task-organizer.py wechat                  # Dry-run WeChat merge/classify

Examples:
    # Next 3 days, as JSON
    ./task-organizer.py digest --days 3 --format json

    # Delete duplicates across all projects
    ./task-organizer.py dedupe --scope all --apply

    # Pair markers created within 5 minutes of their full task
    ./task-organizer.py wechat --window-seconds 300
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from task_organizer import main

if __name__ == '__main__':
    sys.exit(main())
