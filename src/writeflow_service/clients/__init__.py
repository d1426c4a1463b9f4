"""HTTP clients for external collaborators."""

from writeflow_service.clients.notification_client import NotificationClient

__all__ = ["NotificationClient"]
