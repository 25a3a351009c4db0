#!/usr/bin/env python3
"""
Result Cache - Session-scoped snapshots of generated records

Snapshots are keyed by the identity of the two input files (name and
modification time) and expire after a fixed time window. A miss, a stale
entry or an unreadable snapshot is never an error: the caller simply
recomputes.
"""

import hashlib
import json
import logging
import os
import time
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import ValidationError

from rolemap.role_path_schema import CombinedOutput, ResultRecord

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def file_identity(file_path: Union[str, Path]) -> str:
    """'<name>:<mtime>' for a file, the part of a cache key it contributes"""
    stat = os.stat(file_path)
    return f"{os.path.basename(str(file_path))}:{stat.st_mtime_ns}"


def cache_key(*identities: str) -> str:
    digest = hashlib.sha256('|'.join(identities).encode('utf-8'))
    return digest.hexdigest()[:32]


class ResultCache:
    """File-backed snapshot store with a time-to-live"""

    def __init__(self, cache_dir: Union[str, Path], ttl_seconds: int = 1800,
                 clock: Callable[[], float] = time.time):
        self.cache_dir = Path(cache_dir)
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def key_for_files(self, api_file: Union[str, Path], policy_file: Union[str, Path]) -> str:
        return cache_key(file_identity(api_file), file_identity(policy_file))

    def _snapshot_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def get(self, key: str) -> Optional[List[ResultRecord]]:
        """
        Return cached records, or None on miss/stale/corrupt snapshot

        Stale and corrupt snapshots are removed.
        """
        snapshot_path = self._snapshot_path(key)
        if not snapshot_path.exists():
            logger.debug(f"Cache miss: {key}")
            return None

        try:
            with open(snapshot_path, 'r', encoding='utf-8') as f:
                snapshot = json.load(f)
            created_at = float(snapshot['created_at'])
            if snapshot.get('version') != SNAPSHOT_VERSION:
                raise ValueError(f"unsupported snapshot version {snapshot.get('version')!r}")
            output = CombinedOutput.model_validate(snapshot['output'])
        except (OSError, ValueError, KeyError, TypeError, ValidationError) as e:
            logger.warning(f"Discarding unreadable cache snapshot {snapshot_path.name}: {e}")
            self._remove(snapshot_path)
            return None

        age = self.clock() - created_at
        if age > self.ttl_seconds or age < 0:
            logger.debug(f"Cache stale: {key} (age {age:.0f}s, ttl {self.ttl_seconds}s)")
            self._remove(snapshot_path)
            return None

        logger.debug(f"Cache hit: {key} ({len(output.generated_json)} records)")
        return list(output.generated_json)

    def put(self, key: str, records: List[ResultRecord]) -> bool:
        """
        Store a snapshot; failures are logged, not raised

        Returns:
            True if the snapshot was written
        """
        snapshot = {
            'version': SNAPSHOT_VERSION,
            'created_at': self.clock(),
            'output': CombinedOutput(generated_json=records).model_dump(),
        }

        snapshot_path = self._snapshot_path(key)
        tmp_path = snapshot_path.with_suffix('.tmp')
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(snapshot, f)
            os.replace(tmp_path, snapshot_path)
        except OSError as e:
            logger.warning(f"Could not write cache snapshot {snapshot_path}: {e}")
            return False

        logger.debug(f"Cached {len(records)} records under {key}")
        return True

    def invalidate(self, key: str):
        self._remove(self._snapshot_path(key))

    def _remove(self, snapshot_path: Path):
        try:
            snapshot_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove cache snapshot {snapshot_path}: {e}")
