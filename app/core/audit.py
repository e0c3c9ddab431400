from abc import ABC, abstractmethod
from typing import List, Optional
from app.schemas.audit import AuditLogEntry, ActionType
import logging

logger = logging.getLogger(__name__)

class AuditRepository(ABC):
    @abstractmethod
    def save(self, entry: AuditLogEntry):
        pass

    @abstractmethod
    def get_all(self) -> List[AuditLogEntry]:
        pass

    def find(self, endpoint: Optional[str] = None, action_type: Optional[ActionType] = None,
             tenant_id: Optional[str] = None) -> List[AuditLogEntry]:
        return [
            e for e in self.get_all()
            if (endpoint is None or e.endpoint == endpoint)
            and (action_type is None or e.action_type == action_type)
            and (tenant_id is None or e.tenant_id == tenant_id)
        ]

class InMemoryAuditRepository(AuditRepository):
    def __init__(self):
        self._storage: List[AuditLogEntry] = []

    def save(self, entry: AuditLogEntry):
        # Append-only
        self._storage.append(entry)
        logger.info(f"Audit Logged: {entry.model_dump_json()}")

    def get_all(self) -> List[AuditLogEntry]:
        return list(self._storage)

    def clear(self):
        self._storage.clear()

# Global Accessor
audit_repo = InMemoryAuditRepository()
