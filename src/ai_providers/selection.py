"""Change-size decision tables used by adapters to recommend a model."""

from __future__ import annotations

from dataclasses import dataclass

from ai_providers.types import ChangeSignals, ModelRecommendation, Tier


@dataclass(frozen=True)
class TierChoice:
    model: str
    reason: str


@dataclass(frozen=True)
class TierThreshold:
    """Row matching when ``lines > min_lines`` or ``files > min_files``."""

    tier: Tier
    choice: TierChoice
    min_lines: int | None = None
    min_files: int | None = None

    def matches(self, signals: ChangeSignals) -> bool:
        if self.min_lines is not None and signals.lines > self.min_lines:
            return True
        return self.min_files is not None and signals.files > self.min_files


@dataclass(frozen=True)
class SelectionTable:
    """Ordered decision table: breaking > large > medium > small.

    Rows are evaluated top to bottom and the first match wins. Construction
    rejects tables that do not follow that shape.
    """

    breaking: TierChoice
    thresholds: tuple[TierThreshold, ...]
    default: TierChoice

    def __post_init__(self) -> None:
        tiers = [t.tier for t in self.thresholds]
        if any(t not in (Tier.LARGE, Tier.MEDIUM) for t in tiers):
            raise ValueError("Threshold rows must be LARGE or MEDIUM tiers")
        if tiers != sorted(tiers, reverse=True):
            raise ValueError("Threshold rows must be ordered from largest to smallest tier")
        for row in self.thresholds:
            if row.min_lines is None and row.min_files is None:
                raise ValueError(f"Threshold row for {row.tier.name} matches nothing")

    def recommend(self, signals: ChangeSignals) -> ModelRecommendation:
        if signals.breaking or signals.complex:
            return _recommendation(self.breaking, Tier.BREAKING)
        for row in self.thresholds:
            if row.matches(signals):
                return _recommendation(row.choice, row.tier)
        return _recommendation(self.default, Tier.SMALL)


def uniform_table(model: str, reason: str) -> SelectionTable:
    """Table for backends that serve one configured model regardless of size."""
    return SelectionTable(
        breaking=TierChoice(model, f"{reason} (breaking or complex change)"),
        thresholds=(
            TierThreshold(Tier.LARGE, TierChoice(model, f"{reason} (large change)"), 1000, 25),
            TierThreshold(Tier.MEDIUM, TierChoice(model, f"{reason} (medium change)"), 200, 8),
        ),
        default=TierChoice(model, reason),
    )


def _recommendation(choice: TierChoice, tier: Tier) -> ModelRecommendation:
    return ModelRecommendation(model=choice.model, reason=choice.reason, tier=tier)
