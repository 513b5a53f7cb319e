"""Failure types raised by the attribution engine.

Every error names the pipeline stage that detected it and, where one exists,
the unit or category it concerns. A failed table is never partially emitted.
"""


class CreditEngineError(Exception):
    """Base class for all engine failures."""

    def __init__(self, message: str, *, stage: str):
        self.stage = stage
        super().__init__(f"[{stage}] {message}")


class SchemaError(CreditEngineError):
    """A relation row is malformed at a boundary."""

    def __init__(self, relation: str, row: int | None, detail: str, *, stage: str = "source"):
        self.relation = relation
        self.row = row
        location = f"{relation}[{row}]" if row is not None else relation
        super().__init__(f"{location}: {detail}", stage=stage)


class MissingJoinKeyError(CreditEngineError):
    """An event references an actor absent from the attribute relation."""

    def __init__(self, actor_id: str, unit_id: str):
        self.actor_id = actor_id
        self.unit_id = unit_id
        super().__init__(
            f"actor {actor_id!r} on unit {unit_id!r} has no attribute record",
            stage="join",
        )


class ZeroEligibleActorsError(CreditEngineError):
    """A unit reached allocation with an empty actor set."""

    def __init__(self, unit_id: str):
        self.unit_id = unit_id
        super().__init__(f"unit {unit_id!r} has no eligible actors", stage="allocate")


class ConservationViolation(CreditEngineError):
    """Credit no longer sums to what it must."""

    def __init__(self, subject: str, expected, actual, *, stage: str):
        self.subject = subject
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{subject}: expected {float(expected):.12g}, got {float(actual):.12g}",
            stage=stage,
        )


class AmbiguousBucketOverlap(CreditEngineError):
    """A category was placed in more than one display bucket."""

    def __init__(self, category: str, buckets: tuple[str, ...]):
        self.category = category
        self.buckets = buckets
        super().__init__(
            f"category {category!r} assigned to {', '.join(buckets)}",
            stage="bucketize",
        )


class UnknownTableError(KeyError):
    """No table preset is registered under the requested name."""
