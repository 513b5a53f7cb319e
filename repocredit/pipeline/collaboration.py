"""Cross-category collaboration on units.

A unit is a collaboration when it has at least 2 distinct actors and at least
2 distinct non-missing values in the dimension. Three views around a focal
value (e.g. "United States"):

    with_focal                    -> focal value present plus another value;
                                     counted for each non-focal value
    among_others                  -> >= 2 non-focal values, focal may be present
    among_others_excluding_focal  -> >= 2 values, focal absent from the unit

Pair counts: each unit contributes every 2-combination of its distinct
non-missing values, canonicalized in lexicographic order.
"""

import enum
import itertools
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from repocredit.pipeline.records import Contribution, Dimension, missing_label


class CollaborationMode(str, enum.Enum):
    WITH_FOCAL = "with_focal"
    AMONG_OTHERS = "among_others"
    AMONG_OTHERS_EXCLUDING_FOCAL = "among_others_excluding_focal"


@dataclass(frozen=True)
class UnitProfile:
    unit_id: str
    actors: frozenset[str]
    values: tuple[str, ...]  # distinct non-missing values, first-seen order
    position: int


def unit_profiles(contributions: Iterable[Contribution], dimension: Dimension) -> list[UnitProfile]:
    sentinel = missing_label(dimension)
    actors: dict[str, set[str]] = {}
    values: dict[str, list[str]] = {}
    positions: dict[str, int] = {}

    for c in contributions:
        actors.setdefault(c.unit_id, set()).add(c.actor_id)
        seen = values.setdefault(c.unit_id, [])
        positions.setdefault(c.unit_id, c.position)
        for value in c.attributes.get(dimension):
            if value != sentinel and value not in seen:
                seen.append(value)

    return [
        UnitProfile(unit_id=u, actors=frozenset(actors[u]), values=tuple(values[u]), position=positions[u])
        for u in actors
    ]


def collaborating_values(profile: UnitProfile, mode: CollaborationMode, focal: str) -> tuple[str, ...]:
    """Values credited with one collaboration on this unit under ``mode``."""
    if len(profile.actors) < 2:
        return ()
    others = tuple(v for v in profile.values if v != focal)
    has_focal = focal in profile.values

    if mode == CollaborationMode.WITH_FOCAL:
        return others if has_focal and others else ()
    if mode == CollaborationMode.AMONG_OTHERS:
        return others if len(others) >= 2 else ()
    if mode == CollaborationMode.AMONG_OTHERS_EXCLUDING_FOCAL:
        return others if not has_focal and len(others) >= 2 else ()
    raise ValueError(f"Unknown collaboration mode: {mode}")


def collaboration_counts(
    profiles: Sequence[UnitProfile],
    focal: str,
    modes: Sequence[CollaborationMode] = tuple(CollaborationMode),
) -> tuple[dict[CollaborationMode, dict[str, int]], dict[str, int]]:
    """Distinct collaborating units per value for each mode.

    Returns the counts and the first-seen position of every counted value.
    """
    counts: dict[CollaborationMode, dict[str, int]] = {mode: {} for mode in modes}
    first_seen: dict[str, int] = {}
    for profile in sorted(profiles, key=lambda p: p.position):
        for mode in modes:
            for value in collaborating_values(profile, mode, focal):
                counts[mode][value] = counts[mode].get(value, 0) + 1
                first_seen.setdefault(value, profile.position)
    return counts, first_seen


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a <= b else (b, a)


def pair_counts(profiles: Iterable[UnitProfile]) -> dict[tuple[str, str], int]:
    """Number of distinct units producing each canonical value pair."""
    counts: dict[tuple[str, str], int] = {}
    for profile in profiles:
        pairs = {canonical_pair(a, b) for a, b in itertools.combinations(profile.values, 2)}
        for pair in pairs:
            counts[pair] = counts.get(pair, 0) + 1
    return counts
