# tests/conftest.py
"""
Shared pytest fixtures for contextual_ai tests.

Collaborators (page monitor, model backend, privacy store) are small fakes
with just enough behaviour to drive the pipeline; clocks are injected so
TTL and recency rules are deterministic.
"""

import logging

import pytest

from contextual_ai.models import (
    ContentSnapshot,
    ElementInfo,
    Form,
    FormField,
    Heading,
    InteractionContext,
    InteractionType,
    Link,
    ModelTier,
    NetworkActivity,
    NetworkRequest,
    PageSnapshot,
    PrivacyConfig,
    Table,
    UserInteraction,
)

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("contextual_ai").setLevel(logging.DEBUG)

NOW = 1_700_000_000.0


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = NOW):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# =============================================================================
# Snapshots
# =============================================================================


def make_snapshot(
    url: str = "https://shop.example.com/orders",
    title: str = "Orders",
    text: str = "Your recent orders are listed below.",
    *,
    timestamp: float = NOW,
    headings: list[Heading] | None = None,
    links: list[Link] | None = None,
    forms: list[Form] | None = None,
    tables: list[Table] | None = None,
    requests: list[NetworkRequest] | None = None,
    interactions: list[UserInteraction] | None = None,
) -> PageSnapshot:
    return PageSnapshot(
        url=url,
        title=title,
        timestamp=timestamp,
        content=ContentSnapshot(
            text=text,
            headings=headings or [],
            links=links or [],
            forms=forms or [],
            tables=tables or [],
        ),
        network=NetworkActivity(recent_requests=requests or [], total_requests=len(requests or [])),
        interactions=interactions or [],
    )


def make_request(url: str, method: str = "GET", status: int | None = 200, **kwargs) -> NetworkRequest:
    kwargs.setdefault("timestamp", NOW)
    return NetworkRequest(url=url, method=method, status=status, **kwargs)


def make_interaction(
    type: InteractionType = InteractionType.CLICK,
    tag_name: str = "button",
    *,
    timestamp: float = NOW,
    element_id: str | None = None,
    surrounding_text: str | None = None,
) -> UserInteraction:
    return UserInteraction(
        type=type,
        element=ElementInfo(tag_name=tag_name, id=element_id, selector=tag_name),
        timestamp=timestamp,
        context=InteractionContext(surrounding_text=surrounding_text),
    )


def make_form(*names: str, action: str = "/submit", required: bool = False) -> Form:
    return Form(action=action, method="POST", fields=[FormField(name=n, required=required) for n in names])


@pytest.fixture
def snapshot():
    return make_snapshot()


@pytest.fixture
def rich_snapshot():
    """A large page: long text, many links, tables, forms, requests and actions."""
    return make_snapshot(
        url="https://app.example.com/reports",
        title="Quarterly Reports",
        text="Revenue grew in every region this quarter. " * 120,
        headings=[Heading(level=1, text="Reports"), Heading(level=2, text="Revenue")],
        links=[Link(href=f"https://app.example.com/r/{i}", text=f"Report number {i}") for i in range(10)],
        forms=[make_form("from", "to"), make_form("query"), make_form("email", "name")],
        tables=[Table(headers=["Region", "Revenue"], rows=[["EU", "10"], ["US", "12"]]) for _ in range(3)],
        requests=[make_request(f"https://app.example.com/api/reports/{i}") for i in range(8)],
        interactions=[make_interaction(InteractionType.INPUT, "input") for _ in range(5)],
    )


# =============================================================================
# Page monitor & privacy store
# =============================================================================


class FakeMonitor:
    """Page monitor returning a settable snapshot; supports subscriptions."""

    def __init__(self, snapshot: PageSnapshot | None = None, active: bool = True):
        self.snapshot = snapshot
        self.active = active
        self.calls = 0
        self.listeners = []

    async def get_snapshot(self) -> PageSnapshot | None:
        self.calls += 1
        return self.snapshot

    def is_active(self) -> bool:
        return self.active

    def subscribe(self, callback) -> None:
        self.listeners.append(callback)

    def push(self, snapshot: PageSnapshot) -> None:
        self.snapshot = snapshot
        for listener in self.listeners:
            listener(snapshot)


class FakePrivacyStore:
    def __init__(self, config: PrivacyConfig | None = None):
        self.config = config or PrivacyConfig()
        self.calls = 0

    async def get_privacy_config(self) -> PrivacyConfig:
        self.calls += 1
        return self.config


@pytest.fixture
def monitor(snapshot):
    return FakeMonitor(snapshot)


@pytest.fixture
def privacy_store():
    return FakePrivacyStore()


# =============================================================================
# Model backend
# =============================================================================


class FakeModel:
    """Loaded model replaying scripted outputs shared with its backend; an Exception entry is raised."""

    def __init__(self, tier: ModelTier, outputs: list | None = None):
        self.tier = tier
        self.outputs = outputs if outputs is not None else []
        self.prompts: list[str] = []
        self.closed = False

    async def generate(self, prompt: str, **params) -> str:
        self.prompts.append(prompt)
        output = self.outputs.pop(0) if self.outputs else "Hello from the model"
        if isinstance(output, Exception):
            raise output
        return f"{prompt} {output}"

    def close(self) -> None:
        self.closed = True


class FakeBackend:
    """
    Model runtime double.

    ``load_failures`` maps tier id -> exception raised when that tier is
    loaded (on any device); ``outputs`` is shared by every model loaded.
    """

    def __init__(
        self,
        *,
        accelerator: bool = True,
        runtime: bool = True,
        memory_mb: int | None = 8192,
        load_failures: dict[str, Exception] | None = None,
        outputs: list | None = None,
    ):
        self.accelerator = accelerator
        self.runtime = runtime
        self.memory_mb = memory_mb
        self.load_failures = dict(load_failures or {})
        self.outputs = outputs if outputs is not None else []
        self.loads: list[tuple[str, str]] = []
        self.models: list[FakeModel] = []

    async def load(self, tier, device):
        self.loads.append((tier.id, device.value))
        failure = self.load_failures.get(tier.id)
        if failure is not None:
            raise failure
        model = FakeModel(tier, self.outputs)
        self.models.append(model)
        return model

    async def probe_accelerator(self) -> bool:
        return self.accelerator

    def runtime_available(self) -> bool:
        return self.runtime

    def available_memory_mb(self) -> int | None:
        return self.memory_mb


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def fast_config():
    from contextual_ai.services import InferenceConfig

    return InferenceConfig(
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        stream_chunk_delay=0.0,
        load_timeout=1.0,
        inference_timeout=1.0,
    )
