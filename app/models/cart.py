# app/models/cart.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class LocalSnapshot(SQLModel, table=True):
    """
    Process-local copy of the working cart, keyed by a fixed storage key.

    `payload` is a JSON array of CartLine-shaped records. It is validated
    record by record on load; nothing here is trusted.
    """

    __tablename__ = "local_snapshots"

    key: str = Field(
        primary_key=True,
        max_length=64,
        description="Fixed storage key (one row per cart slot)",
    )

    payload: str = Field(
        description="Serialized array of cart lines",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last write timestamp (UTC)",
    )
