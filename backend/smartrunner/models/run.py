from sqlalchemy import JSON, Column, DateTime, Float, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from smartrunner.db import Base


class Run(Base):
    __tablename__ = "runs"

    # Same id the client generated for the record
    id = Column(String(64), primary_key=True)

    # Subject of the bearer token that created the run
    user_id = Column(String, nullable=False, index=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    distance_m = Column(Float, nullable=False, default=0.0)
    duration_s = Column(Float, nullable=False, default=0.0)

    # Speeds are stored in km/h, as shown in the history
    avg_speed_kmh = Column(Float, nullable=False, default=0.0)
    max_speed_kmh = Column(Float, nullable=False, default=0.0)

    calories = Column(Integer, nullable=False, default=0)

    # [{latitude, longitude, timestamp, accuracy}, ...]
    path = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
