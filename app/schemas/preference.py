from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class PreferenceUpsert(BaseModel):
    value: dict[str, Any] | None = None
