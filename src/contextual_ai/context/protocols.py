# contextual_ai/context/protocols.py
"""Collaborators the context pipeline consumes but does not implement."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from contextual_ai.models import PageSnapshot, PrivacyConfig

SnapshotListener = Callable[[PageSnapshot], None]


@runtime_checkable
class PageMonitor(Protocol):
    """Produces page snapshots for the tab the user is looking at."""

    async def get_snapshot(self) -> PageSnapshot | None:
        """Return the current snapshot, or None if nothing has been captured."""
        ...

    def is_active(self) -> bool:
        """True while monitoring is running."""
        ...


@runtime_checkable
class SubscribablePageMonitor(PageMonitor, Protocol):
    """A monitor that also pushes "context updated" events."""

    def subscribe(self, callback: SnapshotListener) -> None: ...


class PrivacySettingsStore(Protocol):
    """Persistent store read for the user's privacy settings."""

    async def get_privacy_config(self) -> PrivacyConfig: ...
