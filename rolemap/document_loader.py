#!/usr/bin/env python3
"""
Document Loader - Parses the API monitor and policy documents

Both documents arrive as raw text (uploaded files). Shape problems with the
document as a whole are fatal for the run and raised as MalformedInputError
before any matching starts. Problems with single observations are not
checked here; the aggregator skips those one by one.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_KEY = 'xceler_api_monitor'


class MalformedInputError(ValueError):
    """Input document is not valid JSON or lacks the expected top-level shape"""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        prefix = f"{source}: " if source else ''
        super().__init__(f"{prefix}{message}")


def _parse_json(text: Union[str, bytes], source: Optional[str]) -> Any:
    if isinstance(text, bytes):
        try:
            text = text.decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"not UTF-8 text ({e})", source) from e
    else:
        text = text.lstrip('\ufeff')

    if not text.strip():
        raise MalformedInputError("document is empty", source)

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"invalid JSON at line {e.lineno} column {e.colno}: {e.msg}", source) from e


def parse_observations(text: Union[str, bytes], source_key: str = DEFAULT_SOURCE_KEY,
                       source: Optional[str] = None) -> List[Any]:
    """
    Extract the observation array from an API monitor document

    Accepts {"<source_key>": [...]} or a bare JSON array.

    Returns:
        List of raw observation entries (validated later, per entry)
    """
    data = _parse_json(text, source)

    if isinstance(data, list):
        observations = data
    elif isinstance(data, dict):
        if source_key not in data:
            raise MalformedInputError(f"missing top-level key '{source_key}'", source)
        observations = data[source_key]
    else:
        raise MalformedInputError(f"expected a JSON object, got {type(data).__name__}", source)

    if not isinstance(observations, list):
        raise MalformedInputError(f"'{source_key}' must be a list, got {type(observations).__name__}", source)

    logger.debug(f"Parsed {len(observations)} observations from {source or 'API monitor document'}")
    return observations


def parse_policy_document(text: Union[str, bytes], source: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """
    Parse a policy document: {policyPath: {sectionName: {grantKey: value}}}

    Entries whose value is not an object are dropped with a warning; they
    could never be resolved to a grant.
    """
    data = _parse_json(text, source)

    if not isinstance(data, dict):
        raise MalformedInputError(f"policy document must be a JSON object, got {type(data).__name__}", source)

    policy_doc = {}
    for policy_path, entry in data.items():
        if not isinstance(entry, dict):
            logger.warning(f"Ignoring policy path {policy_path!r}: entry is {type(entry).__name__}, not an object")
            continue
        policy_doc[policy_path] = entry

    logger.debug(f"Parsed {len(policy_doc)} policy paths from {source or 'policy document'}")
    return policy_doc


def read_document(file_path: Union[str, Path]) -> str:
    """Read a document file as UTF-8 text"""
    try:
        with open(file_path, 'r', encoding='utf-8-sig') as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedInputError(f"cannot read file ({e})", str(file_path)) from e


def load_observations(file_path: Union[str, Path], source_key: str = DEFAULT_SOURCE_KEY) -> List[Any]:
    return parse_observations(read_document(file_path), source_key, source=os.path.basename(str(file_path)))


def load_policy_document(file_path: Union[str, Path]) -> Dict[str, Dict[str, Any]]:
    return parse_policy_document(read_document(file_path), source=os.path.basename(str(file_path)))
