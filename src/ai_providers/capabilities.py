"""Capability descriptor and rule tables keyed on model identifiers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field, fields, replace

_FLAG_NAMES = frozenset(
    ("vision", "tool_use", "json_mode", "reasoning", "large_context", "streaming", "local")
)


@dataclass(frozen=True)
class Capabilities:
    """Describes feature support for a model served by a backend."""

    vision: bool = False
    tool_use: bool = False
    json_mode: bool = False
    reasoning: bool = False
    large_context: bool = False
    streaming: bool = False
    local: bool = False

    def with_flags(self, flags: Mapping[str, bool]) -> Capabilities:
        return replace(self, **dict(flags))

    def as_dict(self) -> dict[str, bool]:
        return asdict(self)

    def enabled(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]


@dataclass(frozen=True)
class CapabilityRule:
    """One row of a capability table.

    The rule matches when every ``contains`` substring is present, at least one
    ``any_of`` substring is present (if any are given) and no ``excludes``
    substring is present. Matching is case-insensitive.
    """

    contains: tuple[str, ...] = ()
    flags: Mapping[str, bool] = field(default_factory=dict)
    any_of: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        unknown = set(self.flags) - _FLAG_NAMES
        if unknown:
            raise ValueError(f"Unknown capability flag(s): {', '.join(sorted(unknown))}")

    def matches(self, model_id: str) -> bool:
        model = model_id.lower()
        if not all(s.lower() in model for s in self.contains):
            return False
        if self.any_of and not any(s.lower() in model for s in self.any_of):
            return False
        return not any(s.lower() in model for s in self.excludes)


def rule(
    *contains: str,
    any_of: Iterable[str] = (),
    excludes: Iterable[str] = (),
    **flags: bool,
) -> CapabilityRule:
    """Shorthand used by adapter tables: ``rule("gpt-4o", vision=True)``."""
    return CapabilityRule(
        contains=tuple(contains),
        flags=flags,
        any_of=tuple(any_of),
        excludes=tuple(excludes),
    )


def derive_capabilities(
    model_id: str | None,
    rules: Iterable[CapabilityRule],
    base: Capabilities = Capabilities(),
) -> Capabilities:
    """Apply every matching rule, in order, on top of ``base``.

    Unknown or empty identifiers simply yield ``base``.
    """
    caps = base
    if not model_id:
        return caps
    for r in rules:
        if r.matches(model_id):
            caps = caps.with_flags(r.flags)
    return caps
