"""
Demo data for empty deployments.
Run explicitly: `sensornet-seed` or `python -m sensornet.seed`
"""
from datetime import timedelta
import random

from sensornet.database import Settings, create_db_engine, settings as default_settings, utcnow
from sensornet.models import CONNECT, DISCONNECT
from sensornet.stores import SensorStore, SqlSensorStore

DEMO_SENSORS = [
    {"id": "SENSOR_001", "name": "Campus Principal - Entrada", "latitude": 7.3797, "longitude": -72.6517},
    {"id": "SENSOR_002", "name": "Centro Histórico", "latitude": 7.3789, "longitude": -72.6489},
    {"id": "SENSOR_003", "name": "Parque Águeda Gallardo", "latitude": 7.3825, "longitude": -72.6545},
    {"id": "SENSOR_004", "name": "Terminal de Transportes", "latitude": 7.3765, "longitude": -72.6478},
]

HOURS_OF_HISTORY = 24
CONNECTION_CYCLES = 5

def seed_demo_data(store: SensorStore, rng: random.Random = None) -> bool:
    """Register demo sensors with a day of hourly readings and a connection history.
    Does nothing if any sensor already exists."""
    rng = rng or random.Random()
    if store.list_sensors():
        print("Store already has sensors, skipping demo data")
        return False

    now = utcnow()
    for index, sensor in enumerate(DEMO_SENSORS):
        store.register_sensor(sensor["id"], sensor["name"], sensor["latitude"], sensor["longitude"])

        base_temp = 22 + index * 2
        base_humidity = 60 + index * 5
        base_pm25 = 10 + index * 5
        for hours_ago in range(HOURS_OF_HISTORY, -1, -1):
            store.insert_reading(
                sensor["id"],
                temperature=base_temp + rng.uniform(-3, 3),
                humidity=base_humidity + rng.uniform(-5, 5),
                pm25=max(0.0, base_pm25 + rng.uniform(-10, 10)),
                timestamp=now - timedelta(hours=hours_ago),
            )

        # Connected for two hours out of every four
        for cycle in range(CONNECTION_CYCLES, 0, -1):
            connected_at = now - timedelta(hours=cycle * 4)
            store.insert_event(sensor["id"], CONNECT, connected_at)
            store.insert_event(sensor["id"], DISCONNECT, connected_at + timedelta(hours=2))

    print(f"Seeded {len(DEMO_SENSORS)} demo sensors with {HOURS_OF_HISTORY + 1} readings each")
    return True

def main(config: Settings = None):
    config = config or default_settings
    store = SqlSensorStore(create_db_engine(config), timedelta(milliseconds=config.stale_threshold_ms))
    store.init_schema()
    seed_demo_data(store)

if __name__ == "__main__":
    main()
