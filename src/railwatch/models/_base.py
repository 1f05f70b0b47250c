"""Base model for feed records.

Every feed record model inherits from :class:`FeedModel` which provides:

* frozen instances, so parsed records can be shared between consumers
* tolerance for unknown keys (feeds add fields without notice)
* a ``model_validator(mode="before")`` that strips placeholder values
  (``""``, ``"--"``, NaN) so the field default is used
* a ``raw`` dict that captures the original record
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from railwatch.ingestion.normalize import prune_record


class FeedModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original feed record."""

    @model_validator(mode="before")
    @classmethod
    def _clean_feed_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned = prune_record(values)
        # Keep a caller-supplied raw= when constructing with kwargs.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
