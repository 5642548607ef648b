"""Real-time ride dispatch engine."""

from ridedispatch.engine.coordinator import DispatchCoordinator
from ridedispatch.engine.geo import haversine_km
from ridedispatch.engine.lifecycle import RideLifecycleManager
from ridedispatch.engine.notifications import NotificationChannel
from ridedispatch.engine.presence import PresenceRegistry
from ridedispatch.engine.scorer import CandidateScorer, ScoringConfig
from ridedispatch.engine.service import DispatchService

__all__ = [
    "haversine_km",
    "PresenceRegistry",
    "CandidateScorer",
    "ScoringConfig",
    "RideLifecycleManager",
    "DispatchCoordinator",
    "NotificationChannel",
    "DispatchService",
]
