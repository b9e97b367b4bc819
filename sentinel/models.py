from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from sentinel.db import Base

class SiteRow(Base):
    __tablename__ = "sites"
    id   = Column(String(128), primary_key=True)
    name = Column(String(255), nullable=False)
    url  = Column(String(2048), nullable=False)

class StatusRow(Base):
    __tablename__ = "status_records"
    id          = Column(String(36), primary_key=True)  # uuid4
    site_id     = Column(String(128), ForeignKey("sites.id"), nullable=False)
    observed_at = Column(DateTime(timezone=True), nullable=False)
    reachable   = Column(Boolean, nullable=False)
    message     = Column(Text, nullable=False, default="")
    latency_ms  = Column(Integer, nullable=False, default=0)

    site        = relationship("SiteRow")

    __table_args__ = (
        Index("ix_status_records_site_observed", "site_id", "observed_at"),
    )
