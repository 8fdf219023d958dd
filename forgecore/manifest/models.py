"""
Manifest cache entry models.

Mirror the repo-server's cached manifest value field for field. Wire names
and declaration order matter: the integrity hash is computed over the
serialized bytes, so a reordered or renamed field forges an invalid entry.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    conint,
    field_validator,
    model_serializer,
    model_validator,
)

# Go int64: decoding a number outside this range fails
GoInt = conint(strict=True, ge=-(2**63), le=2**63 - 1)


class _GoStruct(BaseModel):
    """
    Decoding rules of Go's encoding/json applied to a pydantic model:
    - no type coercion (a quoted number is not an int)
    - `null` leaves a field at its zero value
    - unknown fields are dropped
    """
    model_config = ConfigDict(validate_by_name=True, validate_by_alias=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _null_is_zero(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ManifestResponse(_GoStruct):
    """
    Rendered manifests for one application source. Every field is
    `omitempty` on the wire.
    """
    manifests: List[StrictStr] = Field(default_factory=list)
    namespace: StrictStr = ""
    server: StrictStr = ""
    revision: StrictStr = ""
    source_type: StrictStr = Field(default="", alias="sourceType")
    verify_result: StrictStr = Field(default="", alias="verifyResult")
    commands: List[StrictStr] = Field(default_factory=list)

    @field_validator("manifests", "commands", mode="before")
    @classmethod
    def _null_elements(cls, value: Any) -> Any:
        if isinstance(value, list):
            return ["" if item is None else item for item in value]
        return value

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler) -> Dict[str, Any]:
        data = handler(self)
        return {k: v for k, v in data.items() if v not in ("", [])}


class CachedManifestResponse(_GoStruct):
    """
    The cache value. `cache_entry_hash` must equal the hash of this record
    serialized with `cache_entry_hash` set to "".
    """
    cache_entry_hash: StrictStr = Field(default="", alias="cacheEntryHash")
    manifest_response: Optional[ManifestResponse] = Field(default=None, alias="manifestResponse")
    most_recent_error: StrictStr = Field(default="", alias="mostRecentError")
    first_failure_timestamp: GoInt = Field(default=0, alias="firstFailureTimestamp")
    number_of_consecutive_failures: GoInt = Field(default=0, alias="numberOfConsecutiveFailures")
    number_of_cached_responses_returned: GoInt = Field(default=0, alias="numberOfCachedResponsesReturned")

    @property
    def manifests(self) -> List[str]:
        if self.manifest_response is None:
            return []
        return self.manifest_response.manifests

    def shallow_copy(self) -> "CachedManifestResponse":
        # Nested response is shared, not duplicated
        return self.model_copy()
