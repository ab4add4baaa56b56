"""Repository layer exports."""

from .session_repository import SessionRepository
from .system_log_repository import SessionLogSummary, SystemLogRepository

__all__ = ["SessionLogSummary", "SessionRepository", "SystemLogRepository"]
