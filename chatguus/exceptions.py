"""Application exception taxonomy"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class ChatGuusError(HTTPException):
    """Base exception for the service"""

    def __init__(
        self,
        status_code: int,
        detail: Any = None,
        headers: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(ChatGuusError):
    """Bad or missing required field"""

    def __init__(self, detail: Any = "Validation failed", errors: Optional[list] = None):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
        self.errors = errors or []


class NotFoundError(ChatGuusError):
    """Unknown tenant or resource"""

    def __init__(self, detail: Any = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class UpstreamError(ChatGuusError):
    """Language model, SMTP or document store failure"""

    def __init__(self, detail: Any = "Upstream service failed", service: str = "unknown"):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
        self.service = service


class ConfigurationError(ChatGuusError):
    """Optional integration is not configured"""

    def __init__(self, detail: Any = "Integration not configured", integration: str = "unknown"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
        self.integration = integration
