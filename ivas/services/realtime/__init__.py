"""Realtime event distribution: server side hub and reconnecting client."""

from ivas.services.realtime.client import RealtimeClient
from ivas.services.realtime.hub import EventHub, HubSession, regulators, regulators_and_company

__all__ = ["EventHub", "HubSession", "RealtimeClient", "regulators", "regulators_and_company"]
