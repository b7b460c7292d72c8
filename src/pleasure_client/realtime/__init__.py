"""Realtime push notifications over socket.io."""

from pleasure_client.realtime.channel import MUTATION_EVENTS, RealtimeChannel

__all__ = ["MUTATION_EVENTS", "RealtimeChannel"]
