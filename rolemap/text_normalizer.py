#!/usr/bin/env python3
"""
Text Normalizer - Canonical forms for endpoint paths and handler names

Endpoint paths and policy paths come from two different systems and rarely
agree on gateway prefixes, API versions, casing or separators. Everything the
matcher compares goes through the functions in this module first.

All functions are pure and idempotent:
    normalize_path(normalize_path(x)) == normalize_path(x)
"""

import re
from typing import List

# "/<name>-api/api/..." or "/api/..." at the start of a path. Only "-api"
# gateway names count, so resource segments in front of an "api" segment stay
GATEWAY_PREFIX_RE = re.compile(r'^/*(?:[^/]+-api/+)?api(?:/+|$)', re.IGNORECASE)

# "/v1/", "/v2.1/" anywhere in a path (also a trailing "/v1")
VERSION_SEGMENT_RE = re.compile(r'/v\d+(?:\.\d+)?(?=/|$)', re.IGNORECASE)

CAMEL_BOUNDARY_RE = re.compile(r'([a-z0-9])([A-Z])')
SEPARATORS_RE = re.compile(r'[_\-./]+')
TOKEN_SPLIT_RE = re.compile(r'[/\-_.\s]+')
WHITESPACE_RE = re.compile(r'\s+')


def strip_path(raw: str) -> str:
    """
    Remove gateway prefix and version segments, collapse separators

    Casing is preserved so camelCase segments can still be tokenized.

    Examples:
        '/ctrm-api/api/v1/trade/123' -> '/trade/123'
        'api//physicalTrade/'        -> '/physicalTrade'
        '/ctrm-api/api/v1/invoice/api/status' -> '/invoice/api/status'
    """
    if not raw:
        return '/'

    path = raw.strip()
    previous = None

    # Prefixes can be stacked ("/ctrm-api/api/api/x"), so strip until nothing changes
    while path != previous:
        previous = path
        path = '/' + path.lstrip('/')
        path = GATEWAY_PREFIX_RE.sub('/', path, count=1)
        path = VERSION_SEGMENT_RE.sub('', path)
        path = re.sub(r'/{2,}', '/', path)

    if len(path) > 1:
        path = path.rstrip('/')

    return path or '/'


def normalize_path(raw: str) -> str:
    """
    Canonical, lowercased form of an endpoint or policy path

    Used as the deduplication key for observed endpoints and for exact-match
    comparison against policy paths.
    """
    return strip_path(raw).lower()


def normalize_text(raw: str) -> str:
    """
    Normalize free text such as handler names

    Splits camelCase/PascalCase, turns separators into spaces, lowercases.
        'getTradeDetails'  -> 'get trade details'
        'copy_BL-details'  -> 'copy bl details'
    """
    if not raw:
        return ''

    text = CAMEL_BOUNDARY_RE.sub(r'\1 \2', raw)
    text = SEPARATORS_RE.sub(' ', text)
    return WHITESPACE_RE.sub(' ', text.lower()).strip()


def normalize_tokens(raw: str) -> List[str]:
    """Split text into lowercase tokens on / - _ . and camelCase boundaries"""
    if not raw:
        return []

    text = CAMEL_BOUNDARY_RE.sub(r'\1 \2', raw).lower()
    return [token for token in TOKEN_SPLIT_RE.split(text) if token]


def path_tokens(raw: str) -> List[str]:
    """Tokens of a path after prefix and version stripping"""
    return normalize_tokens(strip_path(raw))
