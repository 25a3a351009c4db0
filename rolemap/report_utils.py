#!/usr/bin/env python3
"""
Report Utilities - Output document, metrics and reasoning text

Provides the generatedJson document the access-control system consumes, the
coverage metrics shown next to it, and the per-row explanation of why a route
and permission were picked. Presentation-only helpers (sorting, matrices)
live here too so the core never reorders its own output.
"""

import json
from typing import Dict, Iterable, List, Optional, Sequence

from rolemap.policy_resolver import category_for_grant, parse_role_path
from rolemap.role_path_schema import CombinedOutput, MatchSummary, PermissionCategory, ResultRecord
from rolemap.text_normalizer import normalize_tokens


def build_output_document(records: Iterable[ResultRecord]) -> Dict:
    """
    Build the output document

    Returns:
        {
            'generatedJson': [
                {'path': '/trade/123', 'rolePath': ['/trade.Grid Access.read'],
                 'methodType': 'GET', 'handlerName': 'getTradeDetails'},
                ...
            ]
        }
    """
    return CombinedOutput(generated_json=list(records)).model_dump()


def serialize_output(records: Iterable[ResultRecord]) -> str:
    """UTF-8 JSON text of the output document (stable for identical input)"""
    return json.dumps(build_output_document(records), indent=2, ensure_ascii=False)


def parse_output(text: str) -> List[ResultRecord]:
    """Read a previously generated output document back into records"""
    return list(CombinedOutput.model_validate(json.loads(text)).generated_json)


def sort_unmatched_first(records: Sequence[ResultRecord]) -> List[ResultRecord]:
    """Records without a role path first; stable otherwise (presentation order)"""
    return sorted(records, key=lambda record: 1 if record.role_path else 0)


def calculate_metrics(summary: MatchSummary) -> Dict:
    """
    Calculate coverage metrics for a run

    Returns:
        {
            'endpoints': 17,      # Unique endpoint paths
            'matched': 12,        # Paths with a role path
            'unmatched': 5,       # Paths needing manual route/permission selection
            'skipped': 0,         # Malformed observations
            'coverage': 70.6      # Percentage of unique paths matched
        }
    """
    unmatched_paths = summary.unique - summary.matched
    coverage = round(summary.matched / summary.unique * 100, 1) if summary.unique else 0

    return {
        'endpoints': summary.unique,
        'matched': summary.matched,
        'unmatched': unmatched_paths,
        'skipped': summary.skipped,
        'coverage': coverage,
    }


def build_role_matrix(records: Sequence[ResultRecord]) -> Dict:
    """
    Build matrix: endpoint paths (rows) x permission categories (columns)

    Returns:
        {
            'rows': ['GET /trade/123', 'POST /budget/save', ...],
            'columns': ['create', 'read', 'edit', 'copy', 'delete'],
            'routes': ['/trade', '/budget', None, ...],
            'grants': ['Grid Access.read', 'Action.save', None, ...],
            'matrix': [[False, True, False, False, False], ...],
            'row_matched': [True, True, False, ...],
        }
    """
    columns = [category.value for category in PermissionCategory]
    rows = []
    routes = []
    grants = []
    matrix = []
    row_matched = []

    for record in records:
        rows.append(f"{record.method_type or 'UNKNOWN'} {record.path}")
        parsed = parse_role_path(record.role_path[0]) if record.role_path else None

        if parsed:
            route, section, grant_key = parsed
            category = category_for_grant(grant_key)
            routes.append(route)
            grants.append(f"{section}.{grant_key}")
            matrix.append([category is not None and category.value == column for column in columns])
        else:
            routes.append(None)
            grants.append(None)
            matrix.append([False] * len(columns))
        row_matched.append(bool(record.role_path))

    return {
        'rows': rows,
        'columns': columns,
        'routes': routes,
        'grants': grants,
        'matrix': matrix,
        'row_matched': row_matched,
    }


# Rule name -> how it is explained to a reviewer
RULE_EXPLANATIONS = {
    'rule-1-copy': 'Rule 1: handler "{handler}" contains copy',
    'rule-2-delete': 'Rule 2: handler "{handler}" contains delete',
    'rule-3-import': 'Rule 3: handler "{handler}" contains import',
    'rule-4-unpost': 'Rule 4: handler "{handler}" contains unpost/deallocate',
    'rule-5-save': 'Rule 5: handler "{handler}" contains save',
    'rule-6-update': 'Rule 6: handler "{handler}" contains update',
    'rule-7-load': 'Rule 7: handler "{handler}" contains load/check',
    'rule-8-is': 'Rule 8: handler "{handler}" contains is',
    'rule-9-get': 'Rule 9: handler "{handler}" contains get',
    'method-delete': 'HTTP method is DELETE -> mapped to edit',
    'method-put': 'HTTP method is PUT -> typically updates data',
    'method-post': 'HTTP method is POST -> typically creates data',
    'method-get': 'HTTP method is GET -> typically reads data',
}


def build_reasoning(path: str, method_type: str, handler_name: str, route: Optional[str],
                    permission: Optional[PermissionCategory], rule_name: Optional[str],
                    route_inferred: bool, permission_defaulted: bool = False,
                    confidence_score: Optional[float] = None) -> str:
    """
    Explain the route and permission chosen for one row

    Args:
        path: Endpoint path of the row
        method_type: HTTP method
        handler_name: Handler name
        route: Selected policy path (None if no route)
        permission: Selected permission
        rule_name: Name of the classification rule that fired, if any
        route_inferred: True if the route came from fuzzy matching
        permission_defaulted: True if no rule fired and 'read' was assumed
        confidence_score: Matcher score of the route, when inferred
    """
    reasons = []

    if route:
        if route_inferred:
            score = f" (score {confidence_score:.2f})" if confidence_score is not None else ''
            reasons.append(f'Route auto-selected: "{route}"{score}')

            handler_lower = (handler_name or '').lower()
            route_lower = route.lower().strip('/')
            if handler_lower and route_lower and (route_lower in handler_lower or handler_lower in route_lower):
                reasons.append(f'   - Handler "{handler_name}" closely matches route')

            route_tokens = set(normalize_tokens(route))
            common = [token for token in dict.fromkeys(normalize_tokens(path)) if token in route_tokens]
            if common:
                reasons.append(f"   - Path contains matching keywords: {', '.join(common)}")
        else:
            reasons.append(f'Route: "{route}" (manually selected or from policy)')
    else:
        reasons.append('No route matched (confidence < 80%)')
        reasons.append('   - Please select a route manually')

    reasons.append('')

    if permission is not None:
        reasons.append(f"Permission: {permission.value.upper()}")
        if permission_defaulted:
            reasons.append('   - Default permission (safest option)')
        elif rule_name in RULE_EXPLANATIONS:
            reasons.append(f"   - {RULE_EXPLANATIONS[rule_name].format(handler=handler_name)}")
        else:
            reasons.append('   - Manually selected')
    else:
        reasons.append('Permission: none')

    reasons.append(f"   - HTTP method: {(method_type or '').upper()}")
    reasons.append(f"   - Handler: {handler_name}")

    return '\n'.join(reasons)
