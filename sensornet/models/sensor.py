from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Index
from sqlalchemy.orm import relationship
from sensornet.database import Base, utcnow

class Sensor(Base):
    __tablename__ = "sensors"
    
    id = Column(Integer, primary_key=True, index=True)
    sensor_id = Column(String, unique=True, nullable=False)  # assigned by the device
    name = Column(String, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_seen = Column(DateTime, nullable=True)  # null until first contact
    last_disconnected_at = Column(DateTime, nullable=True)
    
    readings = relationship("Reading", back_populates="sensor", passive_deletes=True)
    events = relationship("ConnectionEvent", back_populates="sensor", passive_deletes=True)

class Reading(Base):
    __tablename__ = "readings"
    
    id = Column(Integer, primary_key=True, index=True)
    sensor_id = Column(String, ForeignKey("sensors.sensor_id", ondelete="CASCADE"), nullable=False)
    temperature = Column(Float, nullable=False)  # °C
    humidity = Column(Float, nullable=False)  # %
    pm25 = Column(Float, nullable=False)  # µg/m³
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    
    sensor = relationship("Sensor", back_populates="readings")

    __table_args__ = (
        Index("idx_readings_sensor_timestamp", "sensor_id", "timestamp"),
    )
