"""Live WebSocket notifications."""

from dispatchdesk.notifications.hub import NotificationHub, hub

__all__ = ["NotificationHub", "hub"]
