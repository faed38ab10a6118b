from typing import Any, Optional

from rest_framework import status
from rest_framework.response import Response


class APIResponse:
    """Success envelope shared by every billing endpoint; errors are rendered by the exception handler."""

    @staticmethod
    def success(
        data: Any = None,
        message: str = "Success",
        status_code: int = status.HTTP_200_OK,
        meta: Optional[dict] = None,
    ) -> Response:
        body = {"success": True, "message": message}
        if data is not None:
            body["data"] = data
        if meta:
            body["meta"] = meta
        return Response(body, status=status_code)

    @classmethod
    def created(cls, data: Any, message: str) -> Response:
        return cls.success(data=data, message=message, status_code=status.HTTP_201_CREATED)
