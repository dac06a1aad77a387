"""
Per-process services live on app.state, created by create_app().
Routes reach them through these dependencies.
"""
from fastapi import Request

from sensornet.services.broadcaster import EventBroadcaster
from sensornet.services.liveness import LivenessEngine
from sensornet.stores.failover import FailoverStore

def get_store(request: Request) -> FailoverStore:
    return request.app.state.store

def get_engine(request: Request) -> LivenessEngine:
    return request.app.state.engine

def get_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.broadcaster
