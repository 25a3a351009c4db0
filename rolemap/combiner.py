#!/usr/bin/env python3
"""
Policy Combiner

Orchestrates one run: read the two documents, consult the session cache,
aggregate, and write the generatedJson document.

Usage:
    python -m rolemap <api.json> <policy.json> [-o out.json] [--config file.yaml] [--no-cache] [--debug]
"""

import json
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from rolemap.aggregator import CheckpointCallback, ResultAggregator
from rolemap.config import CombinerConfig
from rolemap.document_loader import MalformedInputError, load_observations, load_policy_document
from rolemap.policy_resolver import PolicyDocument, resolve
from rolemap.report_utils import build_output_document, calculate_metrics, serialize_output
from rolemap.result_cache import ResultCache
from rolemap.role_path_schema import MatchSummary, PermissionCategory, ResultRecord
from rolemap.route_matcher import MatchResult, RouteMatcher

logger = logging.getLogger(__name__)


@dataclass
class CombineResult:
    """Records of one run plus how they were obtained"""
    records: List[ResultRecord]
    summary: Optional[MatchSummary]
    from_cache: bool = False


class PolicyCombiner:
    """
    Combines an API monitor document with a policy document

    Exposes the caller-facing operations (compute_matches, rematch_path,
    resolve_grant) and the file-level run used by the command line.
    """

    def __init__(self, config: Optional[CombinerConfig] = None,
                 on_checkpoint: Optional[CheckpointCallback] = None,
                 debug: bool = False):
        """
        Initialize combiner

        Args:
            config: Combiner configuration (defaults + environment if None)
            on_checkpoint: Optional callback(processed, total) run every
                config.checkpoint_interval observations
            debug: Enable debug output
        """
        self.config = config or CombinerConfig.from_env()
        self.on_checkpoint = on_checkpoint
        self.debug = debug
        self.last_summary: Optional[MatchSummary] = None
        self.last_aggregator: Optional[ResultAggregator] = None

        self.cache = None
        if self.config.cache_enabled:
            self.cache = ResultCache(self.config.cache_path, ttl_seconds=self.config.cache_ttl_seconds)

    def compute_matches(self, observations: Iterable[Any], policy_doc: PolicyDocument) -> List[ResultRecord]:
        """One record per distinct observed path, in first-seen order"""
        aggregator = ResultAggregator(
            cutoff=self.config.confidence_cutoff,
            checkpoint_interval=self.config.checkpoint_interval,
            on_checkpoint=self.on_checkpoint,
            debug=self.debug,
        )
        records = aggregator.aggregate(observations, policy_doc)
        self.last_aggregator = aggregator
        self.last_summary = aggregator.summary
        return records

    def rematch_path(self, new_path: str, policy_paths: Sequence[str],
                     handler_name: Optional[str] = None) -> MatchResult:
        """Re-run route matching after a caller edited a path"""
        return RouteMatcher(policy_paths, cutoff=self.config.confidence_cutoff).match(new_path, handler_name)

    def resolve_grant(self, policy_path: str, category: Union[PermissionCategory, str],
                      policy_doc: PolicyDocument) -> List[str]:
        """Resolve a role path after a caller picked a route or permission"""
        return resolve(policy_path, category, policy_doc)

    def combine_files(self, api_file: str, policy_file: str, use_cache: bool = True) -> CombineResult:
        """
        Run the whole pipeline on two files

        Raises:
            MalformedInputError: If either document cannot be used
        """
        cache_key = None
        if use_cache and self.cache is not None:
            try:
                cache_key = self.cache.key_for_files(api_file, policy_file)
            except OSError as e:
                # Unreadable files are reported by the loader below
                logger.debug(f"Skipping cache lookup: {e}")
            cached = self.cache.get(cache_key) if cache_key else None
            if cached is not None:
                if self.debug:
                    print(f"[COMBINER] Using cached result ({len(cached)} records)")
                return CombineResult(records=cached, summary=None, from_cache=True)

        if self.debug:
            print(f"[COMBINER] Reading {api_file} and {policy_file}")

        observations = load_observations(api_file, self.config.source_key)
        policy_doc = load_policy_document(policy_file)

        records = self.compute_matches(observations, policy_doc)

        if cache_key is not None:
            self.cache.put(cache_key, records)

        return CombineResult(records=records, summary=self.last_summary, from_cache=False)

    def generate_output(self, records: Iterable[ResultRecord]) -> Dict:
        return build_output_document(records)

    def write_output(self, records: Iterable[ResultRecord], output_path: Optional[str] = None) -> str:
        """Write the generatedJson document; returns the path written"""
        output_path = output_path or self.config.output_filename
        directory = os.path.dirname(os.path.abspath(output_path))
        os.makedirs(directory, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(serialize_output(records))
            f.write('\n')

        logger.info(f"Wrote {output_path}")
        return output_path


# ============================================================================
# Module-level API
# ============================================================================

def compute_matches(observations: Iterable[Any], policy_doc: PolicyDocument) -> List[ResultRecord]:
    return PolicyCombiner(config=CombinerConfig(cache_enabled=False)).compute_matches(observations, policy_doc)


def rematch_path(new_path: str, policy_paths: Sequence[str], handler_name: Optional[str] = None) -> MatchResult:
    return RouteMatcher(policy_paths).match(new_path, handler_name)


def resolve_grant(policy_path: str, category: Union[PermissionCategory, str],
                  policy_doc: PolicyDocument) -> List[str]:
    return resolve(policy_path, category, policy_doc)


# ============================================================================
# Command line
# ============================================================================

VALUE_FLAGS = ('-o', '--output', '--config')


def _option(argv: List[str], *names: str) -> Optional[str]:
    for name in names:
        if name in argv:
            idx = argv.index(name)
            if idx + 1 < len(argv):
                return argv[idx + 1]
    return None


def _positionals(argv: List[str]) -> List[str]:
    positionals = []
    skip_next = False
    for arg in argv:
        if skip_next:
            skip_next = False
        elif arg in VALUE_FLAGS:
            skip_next = True
        elif not arg.startswith('-'):
            positionals.append(arg)
    return positionals


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point"""
    argv = list(sys.argv[1:] if argv is None else argv)
    positionals = _positionals(argv)

    if len(positionals) < 2 or '-h' in argv or '--help' in argv:
        print(__doc__)
        return 1 if len(positionals) < 2 else 0

    api_file, policy_file = positionals[:2]
    output_file = _option(argv, '-o', '--output')
    config_file = _option(argv, '--config')
    use_cache = '--no-cache' not in argv
    debug = '--debug' in argv

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        config = CombinerConfig.load(config_file)
    except (OSError, ValueError) as e:
        print(f"Error: invalid config: {e}", file=sys.stderr)
        return 1

    combiner = PolicyCombiner(config=config, debug=debug)

    try:
        result = combiner.combine_files(api_file, policy_file, use_cache=use_cache)
    except MalformedInputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output_path = combiner.write_output(result.records, output_file)

    print(f"✓ Generated {len(result.records)} unique entries: {output_path}")
    if result.from_cache:
        print("  (from cache)")
    elif result.summary is not None:
        metrics = calculate_metrics(result.summary)
        print(f"  Matched:   {metrics['matched']}/{metrics['endpoints']} ({metrics['coverage']}%)")
        print(f"  Unmatched: {metrics['unmatched']} (need route or permission selection)")
        if metrics['skipped']:
            print(f"  Skipped:   {metrics['skipped']} malformed observations")
        if debug:
            print(json.dumps(result.summary.model_dump(), indent=2))

    return 0


if __name__ == '__main__':
    sys.exit(main())
