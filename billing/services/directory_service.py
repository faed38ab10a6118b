"""Read-only access to the client/matter records the billing engine needs."""

from __future__ import annotations

from ..models import Client, Matter
from ..validation import NotFoundError


def get_matter(matter_id) -> Matter:
    try:
        return Matter.objects.select_related("client").get(pk=matter_id)
    except (Matter.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Matter not found")


def get_client(client_id) -> Client:
    try:
        return Client.objects.get(pk=client_id)
    except (Client.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Client not found")
