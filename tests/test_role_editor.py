#!/usr/bin/env python3
"""
Tests for role_editor.py

Edits go through the same matcher and resolver as a generation run, so the
expected role paths below follow directly from the policy document.
"""

import os
import sys

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rolemap.role_editor import RoleEditor
from rolemap.role_path_schema import PermissionCategory, ResultRecord


POLICY_DOC = {
    '/trade': {'Grid Access': {'create': True, 'read': True, 'edit': True}},
    '/budget': {'Action': {'save': True}},
}


def make_records():
    return [
        ResultRecord(path='/trade/123', role_path=['/trade.Grid Access.read'],
                     method_type='GET', handler_name='getTradeDetails'),
        ResultRecord(path='/inventory/stock', role_path=[], method_type='GET', handler_name='getStock'),
    ]


class TestRows:

    @staticmethod
    def test_unmatched_rows_first():
        print("\n=== Test: Unmatched Rows First ===")

        editor = RoleEditor(make_records(), POLICY_DOC)
        assert [row.path for row in editor.rows] == ['/inventory/stock', '/trade/123']
        assert editor.pending_routes() == [0]

        print("✓ Rows needing a route listed first")

    @staticmethod
    def test_routed_row_without_grant_sorts_as_routed():
        policy_doc = dict(POLICY_DOC, **{'/reports': {'info': {'screenName': 'Reports'}}})
        records = [
            ResultRecord(path='/reports', role_path=[], method_type='GET', handler_name='getReports'),
            ResultRecord(path='/inventory/stock', role_path=[], method_type='GET', handler_name='getStock'),
        ]
        editor = RoleEditor(records, policy_doc)

        assert [row.path for row in editor.rows] == ['/inventory/stock', '/reports']
        assert editor.rows[1].route == '/reports'
        assert editor.rows[1].role_path == []
        assert editor.pending_routes() == [0]

    @staticmethod
    def test_keeps_input_order_when_not_sorting():
        editor = RoleEditor(make_records(), POLICY_DOC, sort_unmatched_first=False)
        assert [row.path for row in editor.rows] == ['/trade/123', '/inventory/stock']

    @staticmethod
    def test_existing_role_path_parsed():
        editor = RoleEditor(make_records(), POLICY_DOC, sort_unmatched_first=False)
        row = editor.rows[0]
        assert row.route == '/trade'
        assert row.route_inferred is False
        assert row.permission == PermissionCategory.READ
        assert row.role_path == ['/trade.Grid Access.read']
        assert 'manually selected or from policy' in row.reasoning

    @staticmethod
    def test_unclassified_defaults_to_read():
        print("\n=== Test: Default Read Permission ===")

        record = ResultRecord(path='/trade', role_path=[], method_type='PATCH', handler_name='handle')
        row = RoleEditor([record], POLICY_DOC).rows[0]

        assert row.route == '/trade'
        assert row.permission == PermissionCategory.READ
        assert row.permission_defaulted
        assert row.role_path == ['/trade.Grid Access.read']
        assert 'Default permission' in row.reasoning

        print("✓ PATCH without keyword -> read")


class TestEdits:

    @staticmethod
    def test_set_path_rematches_inferred_route():
        print("\n=== Test: Path Edit Rematch ===")

        editor = RoleEditor(make_records(), POLICY_DOC)
        row = editor.set_path(0, '/api/v1/budget/items')

        assert row.path == '/budget/items'
        assert row.route == '/budget'
        assert row.role_path == ['/budget.Action.save']
        assert 'Route auto-selected' in row.reasoning

        print(f"✓ Rematched to {row.route}")

    @staticmethod
    def test_set_path_keeps_explicit_route():
        editor = RoleEditor(make_records(), POLICY_DOC)
        editor.set_route(0, '/trade')
        row = editor.set_path(0, '/budget/items')
        assert row.route == '/trade'

    @staticmethod
    def test_set_route():
        print("\n=== Test: Route Pick ===")

        editor = RoleEditor(make_records(), POLICY_DOC)
        row = editor.set_route(0, '/trade')
        assert row.role_path == ['/trade.Grid Access.read']
        assert editor.pending_routes() == []

        row = editor.set_route(0, None)
        assert row.route is None
        assert row.role_path == []

        with pytest.raises(ValueError):
            editor.set_route(0, '/nowhere')

        print("✓ Route selection recomputes role path")

    @staticmethod
    def test_set_permission_single_choice():
        print("\n=== Test: Permission Toggle ===")

        editor = RoleEditor(make_records(), POLICY_DOC, sort_unmatched_first=False)
        row = editor.set_permission(0, 'EDIT')
        assert row.permission == PermissionCategory.EDIT
        assert row.role_path == ['/trade.Grid Access.edit']

        row = editor.set_permission(0, PermissionCategory.CREATE)
        assert row.role_path == ['/trade.Grid Access.create']

        # Unchecking a permission that is not set changes nothing
        row = editor.set_permission(0, 'read', checked=False)
        assert row.permission == PermissionCategory.CREATE

        row = editor.set_permission(0, 'create', checked=False)
        assert row.permission is None
        assert row.role_path == []

        print("✓ One permission at a time")

    @staticmethod
    def test_invalid_edits():
        editor = RoleEditor(make_records(), POLICY_DOC)
        with pytest.raises(ValueError):
            editor.set_permission(0, 'approve')
        with pytest.raises(IndexError):
            editor.set_permission(5, 'read')
        with pytest.raises(IndexError):
            editor.set_path(-1, '/x')


class TestOutput:

    @staticmethod
    def test_selected_rows_only():
        print("\n=== Test: Selected Rows Output ===")

        editor = RoleEditor(make_records(), POLICY_DOC, sort_unmatched_first=False)
        assert editor.all_selected

        editor.select_all(False)
        editor.select(1)
        output = editor.to_output()
        assert [entry['path'] for entry in output['generatedJson']] == ['/inventory/stock']

        print("✓ Only selected rows emitted")

    @staticmethod
    def test_nothing_selected_emits_all():
        editor = RoleEditor(make_records(), POLICY_DOC, sort_unmatched_first=False)
        editor.select_all(False)
        assert not editor.all_selected

        records = editor.to_records()
        assert [r.path for r in records] == ['/trade/123', '/inventory/stock']
        assert records[0].role_path == ['/trade.Grid Access.read']
