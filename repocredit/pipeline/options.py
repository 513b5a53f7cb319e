"""Per-table run configuration.

One TableConfig describes one output table; the engine is the same for all of
them. Invalid combinations are rejected when the config is built.
"""

import enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from repocredit.config import settings
from repocredit.pipeline.collaboration import CollaborationMode
from repocredit.pipeline.join import JoinPolicy
from repocredit.pipeline.records import AttributeCredit, Contribution, Dimension


class Measure(str, enum.Enum):
    CREDIT = "credit"
    UNITS = "units"
    COLLABORATION = "collaboration"
    PAIRS = "pairs"


class Selection(BaseModel):
    """A labelled summary row computed from the unfiltered relation.

    ``include`` keeps rows holding one of the listed values per dimension;
    ``exclude`` drops rows whose value is listed.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    include: dict[Dimension, tuple[str, ...]] = Field(default_factory=dict)
    exclude: dict[Dimension, tuple[str, ...]] = Field(default_factory=dict)

    def matches_credit(self, row: AttributeCredit) -> bool:
        for dim, wanted in self.include.items():
            if row.value_of(dim) not in wanted:
                return False
        for dim, unwanted in self.exclude.items():
            if row.value_of(dim) in unwanted:
                return False
        return True

    def matches_contribution(self, c: Contribution) -> bool:
        for dim, wanted in self.include.items():
            if not c.attributes.holds_any(dim, wanted):
                return False
        for dim, unwanted in self.exclude.items():
            if all(v in unwanted for v in c.attributes.get(dim)):
                return False
        return True


class TableConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    measure: Measure = Measure.CREDIT

    # Dimensions credit is split across (crossed when two) and the one forming rows
    dimensions: tuple[Dimension, ...] = (Dimension.COUNTRY,)
    group_by: Dimension | None = None

    join_policy: JoinPolicy = JoinPolicy.INNER
    actor_filter: dict[Dimension, tuple[str, ...]] = Field(default_factory=dict)
    earliest_cohort_only: bool = False
    period_range: tuple[int, int] | None = None
    by_period: bool = False

    # Category rows
    where: dict[Dimension, tuple[str, ...]] = Field(default_factory=dict)
    exclude_values: tuple[str, ...] = ()
    top_n: int | Literal["all"] = "all"
    categories: tuple[str, ...] | None = None
    other_label: str | None = None
    show_missing: bool = True

    # Extra rows
    total_label: str | None = None
    summary_rows: tuple[Selection, ...] = ()

    # Collaboration tables
    focal_value: str | None = None
    collaboration_modes: tuple[CollaborationMode, ...] = tuple(CollaborationMode)

    # Presentation
    labels: dict[str, str] = Field(default_factory=dict)
    column_labels: dict[str, str] = Field(default_factory=dict)
    row_order: tuple[str, ...] | None = None
    index_label: str = "Category"
    value_label: str = "Total"

    partitions: int = Field(default=1, ge=1)
    validate_conservation: bool | None = None

    @field_validator("top_n")
    @classmethod
    def check_top_n(cls, value):
        if isinstance(value, int) and value < 0:
            raise ValueError("top_n must be non-negative or 'all'")
        return value

    @model_validator(mode="after")
    def check_consistency(self) -> "TableConfig":
        if not self.dimensions:
            raise ValueError("at least one dimension is required")
        if len(set(self.dimensions)) != len(self.dimensions) or len(self.dimensions) > 2:
            raise ValueError("dimensions must be one or two distinct dimensions")
        if self.group_by is not None and self.group_by not in self.dimensions:
            raise ValueError("group_by must be one of the crossed dimensions")
        if self.measure == Measure.CREDIT:
            for dim in self.where:
                if dim not in self.dimensions:
                    raise ValueError(f"where filters on {dim.value}, which is not crossed")
            for selection in self.summary_rows:
                for dim in (*selection.include, *selection.exclude):
                    if dim not in self.dimensions:
                        raise ValueError(
                            f"summary row '{selection.label}' filters on {dim.value}, which is not crossed"
                        )
        if self.measure in (Measure.COLLABORATION, Measure.PAIRS):
            unused = [
                name
                for name, is_set in (
                    ("where", bool(self.where)),
                    ("exclude_values", bool(self.exclude_values)),
                    ("categories", self.categories is not None),
                    ("other_label", self.other_label is not None),
                    ("total_label", self.total_label is not None),
                    ("summary_rows", bool(self.summary_rows)),
                    ("by_period", self.by_period),
                    ("partitions", self.partitions != 1),
                )
                if is_set
            ]
            if unused:
                raise ValueError(f"{self.measure.value} tables do not support: {', '.join(unused)}")
        if self.categories is not None and self.top_n != "all":
            raise ValueError("use either an explicit category list or top_n, not both")
        if self.measure in (Measure.COLLABORATION, Measure.PAIRS) and len(self.dimensions) != 1:
            raise ValueError(f"{self.measure.value} tables take a single dimension")
        if self.measure == Measure.COLLABORATION and not self.focal_value:
            raise ValueError("collaboration tables need a focal_value")
        if self.period_range is not None and self.period_range[0] > self.period_range[1]:
            raise ValueError("period_range start is after its end")
        return self

    @property
    def category_dimension(self) -> Dimension:
        return self.group_by or self.dimensions[0]

    @property
    def window(self) -> tuple[int, int] | None:
        """Event window; pivoted tables default to the configured period range."""
        if self.period_range is None and self.by_period:
            return (settings.period_start, settings.period_end)
        return self.period_range

    @property
    def limit(self) -> int | None:
        return None if self.top_n == "all" else self.top_n

    @property
    def should_validate(self) -> bool:
        if self.validate_conservation is None:
            return settings.validate_conservation
        return self.validate_conservation

    def display(self, value: str) -> str:
        return self.labels.get(value, value)
