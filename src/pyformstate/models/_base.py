"""Base model for pyformstate boundary data.

Every model that crosses an engine boundary (rule effects supplied by the
caller, validator results, draft envelopes) inherits from
:class:`FormBaseModel`, which freezes instances and rejects unknown keys so
that typos in user-supplied configuration fail loudly at registration.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class FormBaseModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )
