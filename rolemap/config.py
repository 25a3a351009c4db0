#!/usr/bin/env python3
"""
Combiner configuration

Defaults live on the dataclass. Environment variables (ROLEMAP_*) and an
optional YAML/JSON file can override them; the file wins over the
environment.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = 'ROLEMAP_'


@dataclass
class CombinerConfig:
    """Configuration for matching, caching and output"""
    source_key: str = 'xceler_api_monitor'
    confidence_cutoff: float = 0.2
    cache_enabled: bool = True
    cache_dir: str = field(default_factory=lambda: os.path.expanduser('~/.rolemap/cache'))
    cache_ttl_seconds: int = 1800  # 30 minutes
    checkpoint_interval: int = 500  # records between cooperative checkpoints
    output_filename: str = 'combined-output.json'

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'CombinerConfig':
        """Build a config from defaults plus ROLEMAP_* environment variables"""
        environ = os.environ if environ is None else environ
        config = cls()
        overrides = {}
        for config_field in fields(cls):
            env_name = f"{ENV_PREFIX}{config_field.name.upper()}"
            if env_name in environ:
                overrides[config_field.name] = environ[env_name]
        return config.merged(overrides)

    @classmethod
    def load(cls, config_file: Optional[str] = None,
             environ: Optional[Dict[str, str]] = None) -> 'CombinerConfig':
        """
        Build a config from defaults, environment and an optional file

        Args:
            config_file: Path to a YAML or JSON mapping of field -> value
            environ: Environment mapping (defaults to os.environ)

        Raises:
            ValueError: If the file is not valid YAML, not a mapping, or a value
                has the wrong type
        """
        config = cls.from_env(environ)
        if not config_file:
            return config

        with open(config_file, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Config file {config_file} is not valid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_file} must contain a mapping, got {type(data).__name__}")

        logger.debug(f"Loaded config overrides from {config_file}: {sorted(data)}")
        return config.merged(data)

    def merged(self, overrides: Dict[str, Any]) -> 'CombinerConfig':
        """Return a copy with overrides applied and coerced to field types"""
        known = {config_field.name: config_field for config_field in fields(self)}
        values = {name: getattr(self, name) for name in known}

        for name, raw_value in overrides.items():
            if name not in known:
                logger.warning(f"Ignoring unknown config option: {name}")
                continue
            values[name] = _coerce(name, raw_value, type(getattr(self, name)))

        config = CombinerConfig(**values)
        config.validate()
        return config

    def validate(self):
        if not 0.0 < self.confidence_cutoff <= 1.0:
            raise ValueError(f"confidence_cutoff must be in (0, 1], got {self.confidence_cutoff}")
        if self.cache_ttl_seconds < 0:
            raise ValueError(f"cache_ttl_seconds must be >= 0, got {self.cache_ttl_seconds}")
        if self.checkpoint_interval < 0:
            raise ValueError(f"checkpoint_interval must be >= 0, got {self.checkpoint_interval}")
        if not self.source_key:
            raise ValueError("source_key must not be empty")

    @property
    def cache_path(self) -> Path:
        return Path(os.path.expanduser(self.cache_dir))


def _coerce(name: str, value: Any, target_type: type) -> Any:
    if isinstance(value, target_type) and not (target_type is int and isinstance(value, bool)):
        return value

    try:
        if target_type is bool:
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in ('1', 'true', 'yes', 'on'):
                    return True
                if lowered in ('0', 'false', 'no', 'off'):
                    return False
                raise ValueError(value)
            return bool(value)
        if target_type is int:
            return int(value)
        if target_type is float:
            return float(value)
        return str(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for {name}: {value!r} (expected {target_type.__name__})")
