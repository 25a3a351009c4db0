#!/usr/bin/env python3
"""
Policy Resolver - Turns (policy path, permission) into a concrete role path

A policy document looks like:

    {
        "/trade": {
            "info": {"screenName": "Trade", "groupName": "Trading"},
            "Grid Access": {"create": "...", "read": "...", "edit": "..."},
            "Action": {"save": "...", "copyBL": "..."},
            "Toolbar": {...},
            "widgets": {...}
        }
    }

"Grid Access" is preferred. When it lacks the permission, the fallback
sections are searched in order, first by direct key, then by synonym, then by
taking whatever the section declares first.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from rolemap.role_path_schema import PermissionCategory

logger = logging.getLogger(__name__)

PRIMARY_SECTION = 'Grid Access'
FALLBACK_SECTIONS = ('Action', 'Toolbar', 'widgets')

GRANT_SYNONYMS: Dict[PermissionCategory, Tuple[str, ...]] = {
    PermissionCategory.CREATE: ('create', 'save', 'createBulk', 'saveAndActualizeCost',
                                'import', 'add', 'copy'),
    PermissionCategory.EDIT: ('edit', 'update', 'makeDefault', 'delete', 'remove'),
    PermissionCategory.DELETE: ('delete', 'remove'),
    PermissionCategory.COPY: ('copy', 'copyBL', 'copyQualityDetails', 'copyShippingDetails'),
    PermissionCategory.READ: ('read', 'get', 'view', 'load', 'check', 'is'),
}

PolicyDocument = Dict[str, Dict[str, Any]]


def format_role_path(policy_path: str, section: str, grant_key: str) -> str:
    return f"{policy_path}.{section}.{grant_key}"


def _coerce_category(category: Union[PermissionCategory, str, None]) -> Optional[PermissionCategory]:
    if category is None or isinstance(category, PermissionCategory):
        return category
    try:
        return PermissionCategory(str(category).lower())
    except ValueError:
        return None


def _search_section(section: Dict[str, Any], category: PermissionCategory) -> Optional[str]:
    """Direct key, then synonym (table order), then first declared key"""
    if category.value in section:
        return category.value

    for synonym in GRANT_SYNONYMS.get(category, ()):
        if synonym in section:
            return synonym

    for grant_key in section:
        return grant_key

    return None


def resolve(policy_path: Optional[str],
            category: Union[PermissionCategory, str, None],
            policy_doc: PolicyDocument) -> List[str]:
    """
    Resolve the grant a permission maps to inside a policy entry

    Args:
        policy_path: Key of the policy document (matched route)
        category: Permission category (enum or its string value)
        policy_doc: Full policy document

    Returns:
        [] or ['<policyPath>.<section>.<grantKey>']
    """
    category = _coerce_category(category)
    if not policy_path or category is None:
        return []

    entry = policy_doc.get(policy_path)
    if not isinstance(entry, dict):
        return []

    grid_access = entry.get(PRIMARY_SECTION)
    if isinstance(grid_access, dict) and category.value in grid_access:
        return [format_role_path(policy_path, PRIMARY_SECTION, category.value)]

    for section_name in FALLBACK_SECTIONS:
        section = entry.get(section_name)
        if not isinstance(section, dict) or not section:
            continue

        grant_key = _search_section(section, category)
        if grant_key is not None:
            logger.debug(f"Fallback grant {policy_path}.{section_name}.{grant_key} for {category.value}")
            return [format_role_path(policy_path, section_name, grant_key)]

    return []


def parse_role_path(role_path: str,
                    policy_doc: Optional[PolicyDocument] = None) -> Optional[Tuple[str, str, str]]:
    """
    Split a role path back into (policy_path, section, grant_key)

    Policy paths may contain dots themselves, so the section is located by
    name: known sections first, then (with a policy document) any section the
    matching entry declares.
    """
    if not role_path:
        return None

    sections = [PRIMARY_SECTION, *FALLBACK_SECTIONS]
    for section in sections:
        marker = f".{section}."
        index = role_path.rfind(marker)
        if index > 0:
            grant_key = role_path[index + len(marker):]
            if grant_key:
                return role_path[:index], section, grant_key

    if policy_doc:
        for policy_path, entry in policy_doc.items():
            if not isinstance(entry, dict) or not role_path.startswith(f"{policy_path}."):
                continue
            remainder = role_path[len(policy_path) + 1:]
            for section in entry:
                if remainder.startswith(f"{section}.") and len(remainder) > len(section) + 1:
                    return policy_path, section, remainder[len(section) + 1:]

    return None


def category_for_grant(grant_key: str) -> Optional[PermissionCategory]:
    """
    Map a grant key back to the permission it stands for

    Checked in the order create, read, edit, copy, delete so that shared
    synonyms ('copy', 'delete') resolve the same way every time.
    """
    if not grant_key:
        return None

    lowered = grant_key.lower()
    for category in (PermissionCategory.CREATE, PermissionCategory.READ, PermissionCategory.EDIT,
                     PermissionCategory.COPY, PermissionCategory.DELETE):
        if lowered in (synonym.lower() for synonym in GRANT_SYNONYMS[category]):
            return category
    return None
