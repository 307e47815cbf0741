"""
TickTickSync Integration

Reads the data.json kept by the TickTickSync Obsidian plugin. That file holds
both the API credentials (baseURL, token, inboxID) and an offline cache of
tasks and projects, so it serves as the config for live commands and as the
snapshot for cache-digest.
"""

import os
import json
import logging
from pathlib import Path
from typing import List, Dict, Any, Optional

from reconcile.normalize import SnapshotError, extract_cache_data

PLUGIN_DATA_PATH = Path('.obsidian') / 'plugins' / 'tickticksync' / 'data.json'


class TickTickSyncIntegration:
    """Access to TickTickSync's data.json inside an Obsidian vault"""

    def __init__(self, config: Dict[str, Any], data_file: Optional[str] = None):
        """
        Initialize TickTickSync integration

        Args:
            config: 'tickticksync' section of the main config
            data_file: Explicit data.json path (CLI flag), wins over config
        """
        self.config = config
        self.logger = logging.getLogger("TaskOrganizer.TickTickSync")
        self.data_file = self.resolve_data_file(data_file)
        self._data: Optional[Dict[str, Any]] = None

    def candidate_paths(self) -> List[Path]:
        """Default locations searched when no explicit path is given"""
        candidates = []

        vault_path = self.config.get('vault_path')
        if vault_path:
            candidates.append(Path(vault_path).expanduser() / PLUGIN_DATA_PATH)

        cwd = Path.cwd()
        candidates.append(cwd / PLUGIN_DATA_PATH)
        for parent in list(cwd.parents)[:3]:
            candidates.append(parent / PLUGIN_DATA_PATH)

        return candidates

    def resolve_data_file(self, explicit: Optional[str] = None) -> Path:
        """
        Resolve data.json location

        Order: explicit argument, config data_file, TICKTICKSYNC_CONFIG
        (if it exists), vault path, then cwd and up to three parents. Falls back
        to the first candidate so error messages name a sensible path.
        """
        if explicit:
            return Path(explicit).expanduser().resolve()

        if self.config.get('data_file'):
            return Path(self.config['data_file']).expanduser().resolve()

        from_env = os.getenv('TICKTICKSYNC_CONFIG')
        if from_env:
            env_path = Path(from_env).expanduser().resolve()
            if env_path.exists():
                return env_path

        candidates = self.candidate_paths()
        for candidate in candidates:
            if candidate.exists():
                return candidate.resolve()

        return candidates[0]

    def load(self) -> Dict[str, Any]:
        """Read and cache the raw data.json payload"""
        if self._data is not None:
            return self._data

        if not self.data_file.exists():
            raise FileNotFoundError(f"data.json not found: {self.data_file}")

        self.logger.info(f"Reading TickTickSync data: {self.data_file}")
        with open(self.data_file, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise SnapshotError("invalid TickTickSync data.json: expected an object")

        self._data = data
        return self._data

    def get_credentials(self) -> Dict[str, Any]:
        """
        API credentials stored by the plugin

        Returns:
            Dict with 'baseURL', 'token' and 'inboxID' (values may be None)
        """
        data = self.load()
        return {
            'baseURL': data.get('baseURL'),
            'token': data.get('token'),
            'inboxID': data.get('inboxID'),
        }

    def get_cached_snapshot(self) -> Dict[str, Any]:
        """
        Tasks and projects from the plugin's offline cache

        Raises:
            SnapshotError: if the cache lacks tasks/projects or inboxID/baseURL
        """
        snapshot = extract_cache_data(self.load())
        self.logger.info(
            f"Loaded {len(snapshot['tasks'])} tasks and "
            f"{len(snapshot['projects'])} projects from cache"
        )
        return snapshot
