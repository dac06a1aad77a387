from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sensornet.database import Base, utcnow

CONNECT = "connect"
DISCONNECT = "disconnect"
EVENT_TYPES = (CONNECT, DISCONNECT)

class ConnectionEvent(Base):
    __tablename__ = "connection_events"
    
    id = Column(Integer, primary_key=True, index=True)
    sensor_id = Column(String, ForeignKey("sensors.sensor_id", ondelete="CASCADE"), nullable=False)
    event_type = Column(String, nullable=False)  # "connect", "disconnect"
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    
    sensor = relationship("Sensor", back_populates="events")

    __table_args__ = (
        Index("idx_events_sensor_timestamp", "sensor_id", "timestamp"),
    )
