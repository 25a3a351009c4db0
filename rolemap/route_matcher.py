#!/usr/bin/env python3
"""
Route Matcher - Fuzzy matching of endpoint paths to declared policy paths

Scores every policy path against an observed endpoint path:
    - shared tokens             (10 points each)
    - longest common substring  (1 point per character)
    - handler name evidence     (5 points per handler token of length > 3
                                 found inside the candidate)

Each raw score is normalized into [0, 1] against the best score that pair
could reach and inverted so that 0 is a perfect match. The candidate with the
lowest normalized score wins; raw score and path length only break ties, so
a more specific sibling cannot push out a complete match. Anything at or
above the cutoff (0.2, i.e. "80% confidence") is rejected and left for a
human to pick.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from rolemap.text_normalizer import normalize_path, normalize_text, path_tokens

logger = logging.getLogger(__name__)

CONFIDENCE_CUTOFF = 0.2

TOKEN_WEIGHT = 10
SUBSTRING_WEIGHT = 1
HANDLER_WEIGHT = 5
HANDLER_MIN_TOKEN_LENGTH = 4
MAX_HANDLER_BONUS = 50


@dataclass
class MatchResult:
    """Best policy path for an endpoint path (None if not confident enough)"""
    policy_path: Optional[str]
    confidence_score: float

    @property
    def matched(self) -> bool:
        return self.policy_path is not None


@dataclass
class ScoredCandidate:
    """Raw and normalized score of one policy path"""
    policy_path: str
    raw_score: int
    confidence_score: float
    shared_tokens: List[str]
    common_substring: str
    handler_hits: List[str]


def longest_common_substring(a: str, b: str) -> str:
    """Longest contiguous substring shared by a and b (first one found on ties)"""
    if not a or not b:
        return ''

    best_len = 0
    best_end = 0
    previous = [0] * (len(b) + 1)

    for i in range(1, len(a) + 1):
        current = [0] * (len(b) + 1)
        for j in range(1, len(b) + 1):
            if a[i - 1] == b[j - 1]:
                current[j] = previous[j - 1] + 1
                if current[j] > best_len:
                    best_len = current[j]
                    best_end = i
        previous = current

    return a[best_end - best_len:best_end]


def handler_evidence_tokens(handler_name: Optional[str]) -> List[str]:
    """Distinct handler name tokens long enough to count as evidence"""
    if not handler_name:
        return []

    tokens = []
    for token in normalize_text(handler_name).split(' '):
        if len(token) >= HANDLER_MIN_TOKEN_LENGTH and token not in tokens:
            tokens.append(token)
    return tokens


class RouteMatcher:
    """
    Matches endpoint paths against a fixed set of policy paths

    Normalized forms of the policy paths are computed once, so the same
    matcher can serve a whole aggregation run and later interactive edits.
    """

    def __init__(self, policy_paths: Sequence[str], cutoff: float = CONFIDENCE_CUTOFF):
        self.policy_paths = list(policy_paths)
        self.cutoff = cutoff
        self._normalized: Dict[str, Tuple[str, List[str]]] = {
            policy_path: (normalize_path(policy_path), path_tokens(policy_path))
            for policy_path in self.policy_paths
        }

    def match(self, path: str, handler_name: Optional[str] = None) -> MatchResult:
        """
        Find the best policy path for an endpoint path

        Args:
            path: Raw or normalized endpoint path
            handler_name: Optional handler name used as extra evidence

        Returns:
            MatchResult with policy_path None when the best candidate scores
            at or above the cutoff
        """
        if not path or not self.policy_paths:
            return MatchResult(policy_path=None, confidence_score=1.0)

        normalized = normalize_path(path)

        # Exact short-circuit: first declared path wins
        for policy_path in self.policy_paths:
            if self._normalized[policy_path][0] == normalized:
                logger.debug(f"Exact route match {path} -> {policy_path}")
                return MatchResult(policy_path=policy_path, confidence_score=0.0)

        ranked = self.rank(path, handler_name, limit=1)
        if not ranked:
            return MatchResult(policy_path=None, confidence_score=1.0)

        best = ranked[0]
        if best.confidence_score >= self.cutoff:
            logger.debug(
                f"Rejected route {best.policy_path} for {path} "
                f"(score {best.confidence_score:.3f} >= {self.cutoff})"
            )
            return MatchResult(policy_path=None, confidence_score=best.confidence_score)

        logger.debug(f"Route match {path} -> {best.policy_path} (score {best.confidence_score:.3f})")
        return MatchResult(policy_path=best.policy_path, confidence_score=best.confidence_score)

    def rank(self, path: str, handler_name: Optional[str] = None,
             limit: Optional[int] = None) -> List[ScoredCandidate]:
        """
        Score all policy paths for an endpoint path, best first

        Ordering: normalized score ascending, then raw score descending,
        then longer (more specific) policy path, then declaration order. No
        cutoff is applied here.
        """
        if not path:
            return []

        normalized = normalize_path(path)
        tokens = path_tokens(path)
        evidence = handler_evidence_tokens(handler_name)

        scored = []
        for index, policy_path in enumerate(self.policy_paths):
            candidate = self._score(policy_path, normalized, tokens, evidence)
            scored.append((candidate.confidence_score, -candidate.raw_score, -len(policy_path), index, candidate))

        scored.sort(key=lambda item: item[:4])
        ranked = [item[4] for item in scored]
        return ranked[:limit] if limit is not None else ranked

    def _score(self, policy_path: str, normalized: str, tokens: List[str],
               evidence: List[str]) -> ScoredCandidate:
        candidate_norm, candidate_tokens = self._normalized[policy_path]

        shared = [token for token in dict.fromkeys(tokens) if token in candidate_tokens]
        substring = longest_common_substring(normalized, candidate_norm)
        hits = [token for token in evidence if token in candidate_norm]

        handler_bonus = min(HANDLER_WEIGHT * len(hits), MAX_HANDLER_BONUS)
        raw_score = (TOKEN_WEIGHT * len(shared)
                     + SUBSTRING_WEIGHT * len(substring)
                     + handler_bonus)

        # Best score this pair could reach: every token of the shorter side
        # shared, the shorter string fully contained, plus the handler bonus
        # actually earned
        token_room = min(len(set(tokens)), len(set(candidate_tokens)))
        theoretical_max = (TOKEN_WEIGHT * max(token_room, 1)
                           + SUBSTRING_WEIGHT * min(len(normalized), len(candidate_norm))
                           + handler_bonus)

        confidence = 1.0 - (raw_score / theoretical_max) if theoretical_max else 1.0
        confidence = min(max(confidence, 0.0), 1.0)

        return ScoredCandidate(
            policy_path=policy_path,
            raw_score=raw_score,
            confidence_score=round(confidence, 6),
            shared_tokens=shared,
            common_substring=substring,
            handler_hits=hits,
        )


def match(path: str, policy_paths: Sequence[str], handler_name: Optional[str] = None,
          cutoff: float = CONFIDENCE_CUTOFF) -> MatchResult:
    """Match one path without keeping a RouteMatcher around"""
    return RouteMatcher(policy_paths, cutoff=cutoff).match(path, handler_name)
