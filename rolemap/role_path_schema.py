"""
Pydantic schema for role path generation

Observed endpoints go in, one ResultRecord per distinct endpoint comes out.
The output document ({"generatedJson": [...]}) is what the downstream
access-control system consumes, so its field names are camelCase on the wire.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from enum import Enum


# ============================================================================
# Enums
# ============================================================================

class PermissionCategory(str, Enum):
    """The single permission an endpoint needs on its policy path"""
    CREATE = "create"
    READ = "read"
    EDIT = "edit"
    COPY = "copy"
    DELETE = "delete"


class ConfidenceTier(str, Enum):
    """Buckets of route match confidence, for reporting only"""
    EXACT = "exact"  # normalized paths are identical
    STRONG = "strong"  # score < 0.1
    ACCEPTABLE = "acceptable"  # score < cutoff
    REJECTED = "rejected"  # no route (score >= cutoff)


# ============================================================================
# Input Models
# ============================================================================

class EndpointObservation(BaseModel):
    """One observed API call: HTTP method, handler name and raw path"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    http_method: str = Field(
        ...,
        alias="httpMethod",
        description="HTTP method as observed (GET|POST|PUT|DELETE|...)"
    )
    handler_name: str = Field(
        "",
        alias="handlerName",
        description="Server-side handler identifier (e.g., getTradeDetails)"
    )
    raw_path: str = Field(
        ...,
        alias="rawPath",
        description="Full request path including any context prefix"
    )

    @classmethod
    def from_entry(cls, entry: Any) -> Optional["EndpointObservation"]:
        """
        Build an observation from one entry of the API monitor document

        Accepts the native shape {httpMethod, handlerName, rawPath} and the
        API monitor export shape {method, java_method_name, context_path, api}.

        Returns:
            EndpointObservation, or None if the entry is malformed
        """
        if isinstance(entry, EndpointObservation):
            return entry
        if not isinstance(entry, dict):
            return None

        if 'rawPath' in entry or 'raw_path' in entry:
            raw_path = entry.get('rawPath', entry.get('raw_path'))
        elif 'api' in entry:
            context_path = entry.get('context_path') or ''
            api = entry.get('api')
            raw_path = f"{context_path}{api}" if isinstance(api, str) else None
        else:
            raw_path = None

        http_method = entry.get('httpMethod', entry.get('method'))
        handler_name = entry.get('handlerName', entry.get('java_method_name')) or ''

        if not isinstance(raw_path, str) or not raw_path.strip():
            return None
        if not isinstance(http_method, str) or not http_method.strip():
            return None
        if not isinstance(handler_name, str):
            return None

        return cls(
            http_method=http_method.strip(),
            handler_name=handler_name.strip(),
            raw_path=raw_path.strip(),
        )


# ============================================================================
# Output Models
# ============================================================================

class ResultRecord(BaseModel):
    """Combined record for one distinct endpoint path"""
    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(
        ...,
        description="Normalized endpoint path (deduplication key)"
    )
    role_path: List[str] = Field(
        default_factory=list,
        alias="rolePath",
        description="Empty, or exactly one '<policyPath>.<section>.<grantKey>'"
    )
    method_type: str = Field(
        "",
        alias="methodType",
        description="HTTP method of the first observation of this path"
    )
    handler_name: str = Field(
        "",
        alias="handlerName",
        description="Handler name of the first observation of this path"
    )

    def model_dump(self, **kwargs):
        """Override to use wire (camelCase) names by default"""
        kwargs.setdefault('by_alias', True)
        return super().model_dump(**kwargs)


class CombinedOutput(BaseModel):
    """The generated document handed to the access-control system"""
    model_config = ConfigDict(populate_by_name=True)

    generated_json: List[ResultRecord] = Field(
        default_factory=list,
        alias="generatedJson"
    )

    def model_dump(self, **kwargs):
        """Override to use wire (camelCase) names by default"""
        kwargs.setdefault('by_alias', True)
        return super().model_dump(**kwargs)


class MatchSummary(BaseModel):
    """Counters for one aggregation run"""
    total: int = 0
    unique: int = 0
    duplicates: int = 0
    skipped: int = 0
    matched: int = 0
    unmatched: int = 0
    routes_matched: int = 0
    unresolved_permissions: int = 0
    tiers: Dict[str, int] = Field(
        default_factory=lambda: {tier.value: 0 for tier in ConfidenceTier}
    )
