# contextual_ai/services/catalog.py
"""
Model tier catalog and fallback chain construction.

Tiers are ordered by footprint: small < medium < large. A fallback chain
starts at the requested tier, walks down through every smaller tier and
always ends at the smallest one.
"""

from __future__ import annotations

from contextual_ai.models import FootprintClass, ModelTier

MODEL_TIERS: dict[str, ModelTier] = {
    tier.id: tier
    for tier in (
        ModelTier(
            id="small",
            name="TinyLlama 1.1B Chat",
            source="TinyLlama/TinyLlama-1.1B-Chat-v1.0",
            footprint_class=FootprintClass.SMALL,
            capabilities=("chat", "basic-reasoning"),
            memory_requirement_mb=1024,
            accelerator_required=False,
            runtime_required=True,
        ),
        ModelTier(
            id="medium",
            name="Gemma 2B Instruct",
            source="google/gemma-2b-it",
            footprint_class=FootprintClass.MEDIUM,
            capabilities=("chat", "reasoning"),
            memory_requirement_mb=2048,
            accelerator_required=True,
            runtime_required=True,
        ),
        ModelTier(
            id="large",
            name="Phi-3 Mini 3.8B",
            source="microsoft/Phi-3-mini-4k-instruct",
            footprint_class=FootprintClass.LARGE,
            capabilities=("chat", "reasoning", "code"),
            memory_requirement_mb=4096,
            accelerator_required=True,
            runtime_required=True,
        ),
    )
}


def tiers_by_footprint(catalog: dict[str, ModelTier] | None = None) -> list[ModelTier]:
    """All tiers, smallest footprint first."""
    catalog = MODEL_TIERS if catalog is None else catalog
    return sorted(catalog.values(), key=lambda t: (t.footprint_class.rank, t.memory_requirement_mb))


def smallest_tier(catalog: dict[str, ModelTier] | None = None) -> ModelTier:
    return tiers_by_footprint(catalog)[0]


def fallback_chain(requested: str, catalog: dict[str, ModelTier] | None = None) -> list[ModelTier]:
    """
    Tiers to try, in order, when loading ``requested``.

    Raises:
        KeyError: if ``requested`` is not in the catalog
    """
    catalog = MODEL_TIERS if catalog is None else catalog
    start = catalog[requested]
    ordered = tiers_by_footprint(catalog)

    chain = [start]
    chain += [t for t in reversed(ordered) if t.id != start.id and _smaller(t, start)]

    smallest = ordered[0]
    if chain[-1].id != smallest.id:
        chain.append(smallest)
    return chain


def _smaller(tier: ModelTier, than: ModelTier) -> bool:
    return (tier.footprint_class.rank, tier.memory_requirement_mb) < (
        than.footprint_class.rank,
        than.memory_requirement_mb,
    )
