"""Doctor directory table definition using SQLAlchemy Core.

The doctor directory is owned by the platform's user service; this service
only reads it to suggest alternative doctors.
"""

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)

metadata = MetaData()

doctors = Table(
    "doctors",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", Text, nullable=False),
    Column("specialization", String(200), index=True),
    Column("experience_years", Integer),
    Column("rating", Numeric(3, 2)),
    Column("image_url", Text),
    Column("status", String(20), nullable=False, server_default="active", index=True),
)
