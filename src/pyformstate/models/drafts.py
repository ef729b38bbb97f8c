"""Persisted draft document."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from pyformstate.models._base import FormBaseModel


class DraftDocument(FormBaseModel):
    """All drafts of one store, keyed by draft id.

    Values are stored as nested JSON trees. Non-JSON leaves (dates,
    decimals, ...) are serialized by pydantic on dump and come back as their
    JSON form on load.
    """

    drafts: dict[str, dict[str, Any]] = Field(default_factory=dict)

    def without(self, key: str) -> DraftDocument:
        return DraftDocument(drafts={k: v for k, v in self.drafts.items() if k != key})

    def with_draft(self, key: str, blob: dict[str, Any]) -> DraftDocument:
        return DraftDocument(drafts={**self.drafts, key: blob})
