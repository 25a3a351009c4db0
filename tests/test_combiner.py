#!/usr/bin/env python3
"""
Tests for combiner.py

File-level runs, the session cache and the command line.
"""

import json
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rolemap import compute_matches, rematch_path, resolve_grant
from rolemap.combiner import PolicyCombiner, main
from rolemap.config import CombinerConfig
from rolemap.document_loader import MalformedInputError
from rolemap.report_utils import parse_output


API_DOC = {
    'xceler_api_monitor': [
        {'api': '/api/v1/trade/123', 'context_path': '/ctrm-api', 'method': 'GET',
         'java_method_name': 'getTradeDetails'},
        {'api': '/api/v1/budget', 'context_path': '/ctrm-api', 'method': 'POST',
         'java_method_name': 'saveBudget'},
        {'api': '/api/v1/Budget/', 'context_path': '/ctrm-api', 'method': 'GET',
         'java_method_name': 'getBudget'},
        {'api': '/api/v1/inventory/stock', 'method': 'GET', 'java_method_name': 'getStock'},
    ]
}

POLICY_DOC = {
    '/trade': {'info': {'screenName': 'Trade'}, 'Grid Access': {'read': True, 'edit': True}},
    '/budget': {'Action': {'save': True, 'update': True}},
}


def write_inputs(tmpdir):
    api_file = Path(tmpdir) / 'api.json'
    policy_file = Path(tmpdir) / 'policy.json'
    api_file.write_text(json.dumps(API_DOC), encoding='utf-8')
    policy_file.write_text(json.dumps(POLICY_DOC), encoding='utf-8')
    return str(api_file), str(policy_file)


def make_config(tmpdir, **overrides):
    return CombinerConfig(cache_dir=str(Path(tmpdir) / 'cache'), **overrides)


class TestCombineFiles:

    @staticmethod
    def test_combine_files():
        print("\n=== Test: Combine Files ===")

        with tempfile.TemporaryDirectory() as tmpdir:
            api_file, policy_file = write_inputs(tmpdir)
            combiner = PolicyCombiner(config=make_config(tmpdir, cache_enabled=False))
            result = combiner.combine_files(api_file, policy_file)

        assert not result.from_cache
        assert [r.path for r in result.records] == ['/trade/123', '/budget', '/inventory/stock']
        assert result.records[0].role_path == ['/trade.Grid Access.read']
        assert result.records[1].role_path == ['/budget.Action.save']
        assert result.records[2].role_path == []
        assert result.summary.duplicates == 1

        print(f"✓ {len(result.records)} records, {result.summary.matched} matched")

    @staticmethod
    def test_second_run_served_from_cache():
        print("\n=== Test: Cached Second Run ===")

        with tempfile.TemporaryDirectory() as tmpdir:
            api_file, policy_file = write_inputs(tmpdir)
            combiner = PolicyCombiner(config=make_config(tmpdir))

            first = combiner.combine_files(api_file, policy_file)
            second = combiner.combine_files(api_file, policy_file)
            uncached = combiner.combine_files(api_file, policy_file, use_cache=False)

        assert not first.from_cache
        assert second.from_cache
        assert not uncached.from_cache
        assert second.records == first.records

        print("✓ Identical inputs reuse the snapshot")

    @staticmethod
    def test_malformed_input_raises():
        with tempfile.TemporaryDirectory() as tmpdir:
            api_file, policy_file = write_inputs(tmpdir)
            Path(api_file).write_text('{"something_else": []}', encoding='utf-8')
            combiner = PolicyCombiner(config=make_config(tmpdir))

            with pytest.raises(MalformedInputError):
                combiner.combine_files(api_file, policy_file)
            with pytest.raises(MalformedInputError):
                combiner.combine_files(str(Path(tmpdir) / 'missing.json'), policy_file)

    @staticmethod
    def test_custom_source_key():
        with tempfile.TemporaryDirectory() as tmpdir:
            api_file, policy_file = write_inputs(tmpdir)
            Path(api_file).write_text(json.dumps({'calls': API_DOC['xceler_api_monitor']}), encoding='utf-8')
            combiner = PolicyCombiner(config=make_config(tmpdir, source_key='calls', cache_enabled=False))
            assert len(combiner.combine_files(api_file, policy_file).records) == 3

    @staticmethod
    def test_checkpoint_callback_receives_progress():
        calls = []
        with tempfile.TemporaryDirectory() as tmpdir:
            api_file, policy_file = write_inputs(tmpdir)
            combiner = PolicyCombiner(
                config=make_config(tmpdir, cache_enabled=False, checkpoint_interval=2),
                on_checkpoint=lambda done, total: calls.append((done, total)),
            )
            combiner.combine_files(api_file, policy_file)
        assert calls == [(2, 4), (4, 4)]


class TestOutput:

    @staticmethod
    def test_write_output_round_trip():
        print("\n=== Test: Write Output ===")

        with tempfile.TemporaryDirectory() as tmpdir:
            api_file, policy_file = write_inputs(tmpdir)
            combiner = PolicyCombiner(config=make_config(tmpdir, cache_enabled=False))
            records = combiner.combine_files(api_file, policy_file).records

            output_path = combiner.write_output(records, str(Path(tmpdir) / 'out' / 'combined-output.json'))
            text = Path(output_path).read_text(encoding='utf-8')

        data = json.loads(text)
        assert list(data) == ['generatedJson']
        assert data['generatedJson'][0] == {
            'path': '/trade/123',
            'rolePath': ['/trade.Grid Access.read'],
            'methodType': 'GET',
            'handlerName': 'getTradeDetails',
        }
        assert parse_output(text) == records

        print(f"✓ {len(records)} records written and read back")


class TestModuleApi:

    @staticmethod
    def test_compute_matches():
        records = compute_matches(API_DOC['xceler_api_monitor'], POLICY_DOC)
        assert len(records) == 3

    @staticmethod
    def test_rematch_and_resolve():
        result = rematch_path('/api/v1/trade/555', list(POLICY_DOC), 'getTradeDetails')
        assert result.policy_path == '/trade'
        assert resolve_grant(result.policy_path, 'edit', POLICY_DOC) == ['/trade.Grid Access.edit']
        assert resolve_grant('/budget', 'edit', POLICY_DOC) == ['/budget.Action.update']


class TestCommandLine:

    @staticmethod
    def test_main_writes_output(capsys):
        print("\n=== Test: Command Line ===")

        with tempfile.TemporaryDirectory() as tmpdir:
            api_file, policy_file = write_inputs(tmpdir)
            output_file = str(Path(tmpdir) / 'combined-output.json')

            exit_code = main([api_file, policy_file, '-o', output_file, '--no-cache'])
            data = json.loads(Path(output_file).read_text(encoding='utf-8'))

        assert exit_code == 0
        assert len(data['generatedJson']) == 3
        assert 'Generated 3 unique entries' in capsys.readouterr().out

    @staticmethod
    def test_main_reports_malformed_input(capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            api_file, policy_file = write_inputs(tmpdir)
            Path(policy_file).write_text('not json', encoding='utf-8')
            output_file = str(Path(tmpdir) / 'combined-output.json')

            exit_code = main([api_file, policy_file, '-o', output_file, '--no-cache'])
            assert not Path(output_file).exists()

        assert exit_code == 1
        assert 'policy.json' in capsys.readouterr().err

    @staticmethod
    def test_main_prints_usage(capsys):
        assert main([]) == 1
        assert 'Usage' in capsys.readouterr().out
        assert main(['only-one.json', '--debug']) == 1

    @staticmethod
    def test_main_rejects_bad_config(capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            api_file, policy_file = write_inputs(tmpdir)
            config_file = Path(tmpdir) / 'rolemap.yaml'
            config_file.write_text('confidence_cutoff: 7\n', encoding='utf-8')

            exit_code = main([api_file, policy_file, '--config', str(config_file)])

        assert exit_code == 1
        assert 'invalid config' in capsys.readouterr().err

    @staticmethod
    def test_main_reports_unparseable_config(capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            api_file, policy_file = write_inputs(tmpdir)
            config_file = Path(tmpdir) / 'broken.yaml'
            config_file.write_text('confidence_cutoff: [0.5\n', encoding='utf-8')

            exit_code = main([api_file, policy_file, '--config', str(config_file)])

        assert exit_code == 1
        assert 'not valid YAML' in capsys.readouterr().err
