# contextual_ai/models/errors.py
"""Structured error reports collected by the ErrorHandler."""

from __future__ import annotations

import time
import uuid
from typing import Any

from pydantic import BaseModel, Field

from .enums import ErrorCategory, ErrorSeverity, RecoveryStrategy


class ErrorRecord(BaseModel):
    id: str = Field(default_factory=lambda: f"err_{uuid.uuid4().hex[:12]}")
    timestamp: float = Field(default_factory=time.time)
    category: ErrorCategory
    severity: ErrorSeverity
    component: str
    message: str
    error_type: str | None = Field(default=None, description="Exception class name, if any")
    context: dict[str, Any] = Field(default_factory=dict)
    recovery_strategy: RecoveryStrategy = RecoveryStrategy.NO_ACTION
    resolved: bool = False


class ErrorStatistics(BaseModel):
    total: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_component: dict[str, int] = Field(default_factory=dict)
    resolved: int = 0
    recent: list[ErrorRecord] = Field(default_factory=list)
