from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Actor(Base):
    """Contributor attribute record; each field is delimiter-separated."""

    __tablename__ = "actors"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    country: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sector: Mapped[str] = mapped_column(Text, nullable=False, default="")
    organization: Mapped[str] = mapped_column(Text, nullable=False, default="")


class Contribution(Base):
    """Earliest period an actor contributed to a unit (repository branch).

    actor_id is not a foreign key: events may reference actors that have no
    attribute record.
    """

    __tablename__ = "contributions"
    __table_args__ = (UniqueConstraint("actor_id", "unit_id", name="uq_contribution_actor_unit"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    unit_id: Mapped[str] = mapped_column(String(300), nullable=False, index=True)
    period: Mapped[int] = mapped_column(Integer, nullable=False)
