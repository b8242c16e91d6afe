# contextual_ai/base_models.py
"""Base model with dict-style access for response payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class DictCompatModel(BaseModel):
    """Base for response models that UI callers read like plain dicts.

    Allows ``resp["model"]``, ``"model" in resp`` and ``resp.get("model")``
    so consumers written against JSON payloads keep working.
    """

    def __getitem__(self, key: str) -> Any:
        if key not in type(self).model_fields:
            raise KeyError(key)
        return getattr(self, key)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            return key in type(self).model_fields
        return False

    def get(self, key: str, default: Any = None) -> Any:
        if key in type(self).model_fields:
            return getattr(self, key)
        return default

    def __eq__(self, other: object) -> bool:
        if isinstance(other, dict):
            return self.model_dump() == other
        return super().__eq__(other)
