"""Registry model: one row per ingested file."""
from sqlalchemy import JSON, Column, DateTime, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from db import UNIQUE_TABLE_NAME, Base


class FileMetadata(Base):
    """Maps an uploaded file to the table its rows were written to."""

    __tablename__ = "file_metadata"
    __table_args__ = (UniqueConstraint("table_name", name=UNIQUE_TABLE_NAME),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_name = Column(Text, nullable=False)
    table_name = Column(Text, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    primary_key = Column(Text, nullable=False)
    details = Column(JSON().with_variant(JSONB(), "postgresql"))  # {"columns": [...]}
