"""Pydantic model for feature flags.

Learn: The relay never evaluates flags, it only needs `key` and `version`.
Everything else (rules, targets, variations...) rides along as extra fields
so a flag round-trips through the relay without losing data.

Absent vs null matters on the wire: `to_json()` dumps with exclude_unset,
so a field that was never set stays absent while an explicit null is kept.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FeatureFlag(BaseModel):
    model_config = ConfigDict(extra="allow")

    key: str = Field(..., min_length=1)
    version: int = Field(..., ge=0)
    deleted: bool = False

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


# The dataset: flag key → flag. Segments are opaque and relayed as {}.
FlagMap = dict[str, FeatureFlag]


def tombstone(key: str, version: int) -> FeatureFlag:
    """Deleted marker kept by stores so stale writes can be rejected."""
    return FeatureFlag(key=key, version=version, deleted=True)
