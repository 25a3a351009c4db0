"""
ResultAggregator - Builds one role path record per distinct endpoint

Walks the observed endpoints in document order and, for each new canonical
path, runs route matching, permission classification and policy resolution.
Duplicate paths are discarded (first seen wins), so the order of the input
document matters and is preserved in the output.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from rolemap.permission_classifier import classify_with_rule
from rolemap.policy_resolver import PolicyDocument, resolve
from rolemap.role_path_schema import (
    ConfidenceTier, EndpointObservation, MatchSummary, PermissionCategory, ResultRecord
)
from rolemap.route_matcher import CONFIDENCE_CUTOFF, MatchResult, RouteMatcher
from rolemap.text_normalizer import normalize_path

logger = logging.getLogger(__name__)

STRONG_CONFIDENCE = 0.1

CheckpointCallback = Callable[[int, int], None]


@dataclass
class EndpointDetail:
    """Everything decided for one record, kept for reasoning and editing"""
    observation: EndpointObservation
    match: MatchResult
    category: Optional[PermissionCategory]
    rule_name: Optional[str]
    rule_description: str
    tier: ConfidenceTier


class ResultAggregator:
    """
    Folds observations into a unique-by-path list of ResultRecords

    After aggregate() the run's counters are in `summary` and the per-path
    decisions are in `details` (same keys and order as the records).
    """

    def __init__(self, cutoff: float = CONFIDENCE_CUTOFF, checkpoint_interval: int = 0,
                 on_checkpoint: Optional[CheckpointCallback] = None, debug: bool = False):
        self.cutoff = cutoff
        self.checkpoint_interval = checkpoint_interval
        self.on_checkpoint = on_checkpoint
        self.debug = debug
        self.summary = MatchSummary()
        self.details: "OrderedDict[str, EndpointDetail]" = OrderedDict()

    def aggregate(self, observations: Iterable[Any], policy_doc: PolicyDocument) -> List[ResultRecord]:
        """
        Build records for all distinct endpoint paths

        Args:
            observations: EndpointObservation objects or raw document entries
            policy_doc: Parsed policy document

        Returns:
            ResultRecords in first-seen order
        """
        observations = list(observations)
        matcher = RouteMatcher(list(policy_doc.keys()), cutoff=self.cutoff)

        records: "OrderedDict[str, ResultRecord]" = OrderedDict()
        self.summary = MatchSummary(total=len(observations))
        self.details = OrderedDict()

        if self.debug:
            print(f"[AGGREGATOR] Matching {len(observations)} observations against {len(policy_doc)} policy paths")

        for processed, entry in enumerate(observations, 1):
            self._process(entry, processed, matcher, policy_doc, records)

            if (self.on_checkpoint and self.checkpoint_interval
                    and processed % self.checkpoint_interval == 0):
                self.on_checkpoint(processed, len(observations))

        self.summary.unique = len(records)

        logger.info(
            f"Aggregated {self.summary.total} observations into {self.summary.unique} paths "
            f"({self.summary.matched} matched, {self.summary.unmatched} unmatched, "
            f"{self.summary.skipped} skipped)"
        )
        if self.debug:
            print(f"[AGGREGATOR]   Unique paths: {self.summary.unique}")
            print(f"[AGGREGATOR]   Matched: {self.summary.matched}")
            print(f"[AGGREGATOR]   Unmatched: {self.summary.unmatched}")

        return list(records.values())

    def _process(self, entry: Any, position: int, matcher: RouteMatcher,
                 policy_doc: PolicyDocument, records: Dict[str, ResultRecord]):
        observation = EndpointObservation.from_entry(entry)
        if observation is None:
            logger.warning(f"Skipping malformed observation #{position}: {entry!r:.200}")
            self.summary.skipped += 1
            self.summary.unmatched += 1
            return

        path = normalize_path(observation.raw_path)
        if path in records:
            self.summary.duplicates += 1
            return

        match = matcher.match(path, observation.handler_name)
        category, rule = classify_with_rule(observation.handler_name, observation.http_method)
        role_path = resolve(match.policy_path, category, policy_doc) if match.matched else []

        records[path] = ResultRecord(
            path=path,
            role_path=role_path,
            method_type=observation.http_method,
            handler_name=observation.handler_name,
        )

        tier = self._tier(path, match)
        self.details[path] = EndpointDetail(
            observation=observation,
            match=match,
            category=category,
            rule_name=rule.name if rule else None,
            rule_description=rule.description if rule else '',
            tier=tier,
        )
        self._tally(match, category, role_path, tier)

    def _tier(self, path: str, match: MatchResult) -> ConfidenceTier:
        if not match.matched:
            return ConfidenceTier.REJECTED
        if normalize_path(match.policy_path) == path:
            return ConfidenceTier.EXACT
        if match.confidence_score < STRONG_CONFIDENCE:
            return ConfidenceTier.STRONG
        return ConfidenceTier.ACCEPTABLE

    def _tally(self, match: MatchResult, category: Optional[PermissionCategory],
               role_path: List[str], tier: ConfidenceTier):
        if match.matched:
            self.summary.routes_matched += 1
        if category is None:
            self.summary.unresolved_permissions += 1
        if role_path:
            self.summary.matched += 1
        else:
            self.summary.unmatched += 1
        self.summary.tiers[tier.value] += 1
