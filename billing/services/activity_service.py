from __future__ import annotations

import logging
from typing import Any, Dict

from ..models import BillingActivity

logger = logging.getLogger(__name__)


class ActivityService:
    @staticmethod
    def log(entity_type: str, entity_id: int, action: str, user=None, details: Dict[str, Any] = None) -> BillingActivity:
        return BillingActivity.objects.create(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            details=details or {},
            user=user,
            is_system=user is None,
        )

    @staticmethod
    def history(entity_type: str, entity_id: int):
        return BillingActivity.objects.filter(entity_type=entity_type, entity_id=entity_id)
