"""
Role Path Combiner

Matches observed API endpoints to access-policy paths and infers the single
permission grant (role path) each endpoint needs.
"""

from .aggregator import ResultAggregator
from .combiner import PolicyCombiner, compute_matches, rematch_path, resolve_grant
from .config import CombinerConfig
from .document_loader import MalformedInputError
from .role_editor import RoleEditor
from .role_path_schema import EndpointObservation, PermissionCategory, ResultRecord
from .route_matcher import MatchResult

__all__ = [
    'PolicyCombiner',
    'ResultAggregator',
    'RoleEditor',
    'CombinerConfig',
    'MalformedInputError',
    'EndpointObservation',
    'PermissionCategory',
    'ResultRecord',
    'MatchResult',
    'compute_matches',
    'rematch_path',
    'resolve_grant',
]
