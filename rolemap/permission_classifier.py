#!/usr/bin/env python3
"""
Permission Classifier - Maps (handler name, HTTP method) to one permission

The rules below are evaluated in order and the first match wins. The order is
a priority, not an accident: "copyAndDeleteRecord" must be a create (rule 1)
even though it also contains "delete" (rule 2).

Keyword checks are plain substring containment on the lowercased handler
name, so "budgetLine" contains "get" and "listItems" contains "is". Callers
that need stricter matching should look at the firing rule returned by
classify_with_rule().
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from rolemap.role_path_schema import PermissionCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationRule:
    """Handler contains any keyword AND method in methods -> category"""
    name: str
    keywords: Tuple[str, ...]
    methods: FrozenSet[str]
    category: PermissionCategory
    description: str = ''

    def applies(self, handler_lower: str, method_upper: str) -> bool:
        if method_upper not in self.methods:
            return False
        if not self.keywords:
            return True
        return any(keyword in handler_lower for keyword in self.keywords)


POST_GET = frozenset({'POST', 'GET'})

CLASSIFICATION_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule('rule-1-copy', ('copy',), POST_GET,
                       PermissionCategory.CREATE, 'handler contains copy'),
    ClassificationRule('rule-2-delete', ('delete',), frozenset({'POST', 'GET', 'DELETE'}),
                       PermissionCategory.EDIT, 'handler contains delete'),
    ClassificationRule('rule-3-import', ('import',), POST_GET,
                       PermissionCategory.CREATE, 'handler contains import'),
    ClassificationRule('rule-4-unpost', ('unpost', 'deallocate'), POST_GET,
                       PermissionCategory.CREATE, 'handler contains unpost/deallocate'),
    ClassificationRule('rule-5-save', ('save',), POST_GET,
                       PermissionCategory.CREATE, 'handler contains save'),
    ClassificationRule('rule-6-update', ('update',), POST_GET,
                       PermissionCategory.EDIT, 'handler contains update'),
    ClassificationRule('rule-7-load', ('load', 'check'), POST_GET,
                       PermissionCategory.READ, 'handler contains load/check'),
    ClassificationRule('rule-8-is', ('is',), POST_GET,
                       PermissionCategory.READ, 'handler contains is'),
    ClassificationRule('rule-9-get', ('get',), POST_GET,
                       PermissionCategory.READ, 'handler contains get'),
    # Method-only fallback
    ClassificationRule('method-delete', (), frozenset({'DELETE'}),
                       PermissionCategory.EDIT, 'HTTP DELETE is mapped to edit'),
    ClassificationRule('method-put', (), frozenset({'PUT'}),
                       PermissionCategory.EDIT, 'HTTP PUT typically updates data'),
    ClassificationRule('method-post', (), frozenset({'POST'}),
                       PermissionCategory.CREATE, 'HTTP POST typically creates data'),
    ClassificationRule('method-get', (), frozenset({'GET'}),
                       PermissionCategory.READ, 'HTTP GET typically reads data'),
)


def classify_with_rule(handler_name: Optional[str], http_method: Optional[str],
                       rules: Tuple[ClassificationRule, ...] = CLASSIFICATION_RULES
                       ) -> Tuple[Optional[PermissionCategory], Optional[ClassificationRule]]:
    """
    Run the rule cascade and report which rule fired

    Returns:
        (category, rule), or (None, None) if nothing applies
    """
    handler_lower = (handler_name or '').lower()
    method_upper = (http_method or '').strip().upper()

    for rule in rules:
        if rule.applies(handler_lower, method_upper):
            return rule.category, rule

    logger.debug(f"No permission rule for handler={handler_name!r} method={http_method!r}")
    return None, None


def classify(handler_name: Optional[str], http_method: Optional[str]) -> Optional[PermissionCategory]:
    """
    Select exactly one permission category for an endpoint

    Returns None when neither a keyword rule nor the method fallback applies
    (e.g. PATCH with an uninformative handler name). Defaulting that to
    'read' is left to the caller.
    """
    category, _ = classify_with_rule(handler_name, http_method)
    return category
