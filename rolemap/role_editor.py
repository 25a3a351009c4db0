#!/usr/bin/env python3
"""
Role Editor - Interactive overrides on generated records

Holds the state a review grid needs, without the grid: one row per record
with its route, its single permission, a selection flag and a reasoning text.
Every edit recomputes the row's role path through the same matcher and
resolver the aggregator uses, so the same edits always give the same output.

Rows without a resolved permission default to 'read' here, the safest
permission, and the reasoning says so.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

from rolemap.permission_classifier import classify_with_rule
from rolemap.policy_resolver import PolicyDocument, category_for_grant, parse_role_path, resolve
from rolemap.report_utils import build_output_document, build_reasoning
from rolemap.role_path_schema import PermissionCategory, ResultRecord
from rolemap.route_matcher import CONFIDENCE_CUTOFF, RouteMatcher
from rolemap.text_normalizer import normalize_path

logger = logging.getLogger(__name__)

DEFAULT_PERMISSION = PermissionCategory.READ


@dataclass
class RoleRow:
    """Editable state of one record"""
    path: str
    method_type: str
    handler_name: str
    route: Optional[str] = None
    route_inferred: bool = True
    confidence_score: Optional[float] = None
    permission: Optional[PermissionCategory] = None
    permission_defaulted: bool = False
    rule_name: Optional[str] = None
    role_path: List[str] = field(default_factory=list)
    selected: bool = True
    reasoning: str = ''

    def to_record(self) -> ResultRecord:
        return ResultRecord(
            path=self.path,
            role_path=list(self.role_path),
            method_type=self.method_type,
            handler_name=self.handler_name,
        )


class RoleEditor:
    """
    Review and override state for a list of ResultRecords

    Rows without a route come first (stable) when sort_unmatched_first is
    set, which is how a reviewer wants to see them. A row with a route but
    no resolvable grant counts as routed.
    """

    def __init__(self, records: Iterable[ResultRecord], policy_doc: PolicyDocument,
                 cutoff: float = CONFIDENCE_CUTOFF, sort_unmatched_first: bool = True):
        self.policy_doc = policy_doc
        self.policy_routes = list(policy_doc.keys())
        self.matcher = RouteMatcher(self.policy_routes, cutoff=cutoff)
        self.rows: List[RoleRow] = [self._build_row(record) for record in records]

        if sort_unmatched_first:
            self.rows.sort(key=lambda row: 1 if row.route else 0)

    # ========================================================================
    # ROW CONSTRUCTION
    # ========================================================================

    def _build_row(self, record: ResultRecord) -> RoleRow:
        row = RoleRow(
            path=record.path,
            method_type=record.method_type or 'UNKNOWN',
            handler_name=record.handler_name or '',
        )

        # Existing role path: take route and permission from it as-is
        parsed = parse_role_path(record.role_path[0], self.policy_doc) if record.role_path else None
        if parsed:
            route, _, grant_key = parsed
            row.route = route
            row.route_inferred = False
            row.permission = category_for_grant(grant_key)
            row.role_path = list(record.role_path)
            if row.permission is None:
                row.permission = DEFAULT_PERMISSION
                row.permission_defaulted = True
            row.reasoning = self._reasoning(row)
            return row

        self._rematch(row)
        category, rule = classify_with_rule(row.handler_name, row.method_type)
        self._apply_permission(row, category, rule.name if rule else None)
        self._refresh(row)
        return row

    def _rematch(self, row: RoleRow):
        result = self.matcher.match(row.path, row.handler_name)
        row.route = result.policy_path
        row.route_inferred = True
        row.confidence_score = result.confidence_score

    def _apply_permission(self, row: RoleRow, category: Optional[PermissionCategory],
                          rule_name: Optional[str]):
        if category is None:
            row.permission = DEFAULT_PERMISSION
            row.permission_defaulted = True
            row.rule_name = None
        else:
            row.permission = category
            row.permission_defaulted = False
            row.rule_name = rule_name

    def _refresh(self, row: RoleRow):
        if row.route and row.permission is not None:
            row.role_path = resolve(row.route, row.permission, self.policy_doc)
        else:
            row.role_path = []
        row.reasoning = self._reasoning(row)

    def _reasoning(self, row: RoleRow) -> str:
        return build_reasoning(
            path=row.path,
            method_type=row.method_type,
            handler_name=row.handler_name,
            route=row.route,
            permission=row.permission,
            rule_name=row.rule_name,
            route_inferred=row.route_inferred,
            permission_defaulted=row.permission_defaulted,
            confidence_score=row.confidence_score if row.route_inferred else None,
        )

    def _row(self, index: int) -> RoleRow:
        if not 0 <= index < len(self.rows):
            raise IndexError(f"No row {index} (have {len(self.rows)})")
        return self.rows[index]

    # ========================================================================
    # EDITS
    # ========================================================================

    def set_path(self, index: int, path: str) -> RoleRow:
        """
        Change a row's endpoint path

        An inferred route is re-matched against the new path; a route the
        reviewer picked explicitly is kept.
        """
        row = self._row(index)
        row.path = normalize_path(path)
        if row.route_inferred:
            self._rematch(row)
        self._refresh(row)
        logger.debug(f"Row {index}: path -> {row.path}, route -> {row.route}")
        return row

    def set_route(self, index: int, route: Optional[str]) -> RoleRow:
        """Pick a policy path explicitly (None or '' clears the route)"""
        row = self._row(index)
        if route and route not in self.policy_doc:
            raise ValueError(f"Unknown policy path: {route!r}")

        row.route = route or None
        row.route_inferred = False
        row.confidence_score = None
        self._refresh(row)
        logger.debug(f"Row {index}: route -> {row.route}")
        return row

    def set_permission(self, index: int, permission: Union[PermissionCategory, str],
                       checked: bool = True) -> RoleRow:
        """
        Toggle a permission; at most one permission is set per row

        Unchecking the current permission leaves the row without one. A row
        without a route gets one from the matcher first.
        """
        row = self._row(index)
        try:
            category = PermissionCategory(str.lower(permission))
        except (TypeError, ValueError):
            raise ValueError(f"Unknown permission: {permission!r}") from None

        if checked:
            row.permission = category
        elif row.permission == category:
            row.permission = None
        row.permission_defaulted = False
        row.rule_name = None

        if not row.route:
            self._rematch(row)

        self._refresh(row)
        logger.debug(f"Row {index}: permission -> {row.permission}, rolePath -> {row.role_path}")
        return row

    def select(self, index: int, selected: bool = True) -> RoleRow:
        row = self._row(index)
        row.selected = selected
        return row

    def select_all(self, selected: bool = True):
        for row in self.rows:
            row.selected = selected

    # ========================================================================
    # OUTPUT
    # ========================================================================

    @property
    def all_selected(self) -> bool:
        return bool(self.rows) and all(row.selected for row in self.rows)

    def pending_routes(self) -> List[int]:
        """Indexes of rows that still need a route"""
        return [index for index, row in enumerate(self.rows) if not row.route]

    def to_records(self) -> List[ResultRecord]:
        """Selected rows as records, or all rows when none is selected"""
        selected = [row for row in self.rows if row.selected]
        working = selected or self.rows
        return [row.to_record() for row in working]

    def to_output(self) -> Dict:
        return build_output_document(self.to_records())
