from abc import ABC, abstractmethod
from typing import List
from harmonizer.schemas.activity import ActivityLogEntry
import logging

logger = logging.getLogger(__name__)

class ActivityRepository(ABC):
    @abstractmethod
    def save(self, entry: ActivityLogEntry):
        pass

    @abstractmethod
    def get_all(self) -> List[ActivityLogEntry]:
        pass

    def for_invoice(self, invoice_id: str) -> List[ActivityLogEntry]:
        """Trail of one invoice: its selections, decisions and clears, oldest first."""
        return [entry for entry in self.get_all() if entry.invoice_id == invoice_id]

class InMemoryActivityRepository(ActivityRepository):
    def __init__(self):
        self._storage: List[ActivityLogEntry] = []

    def save(self, entry: ActivityLogEntry):
        # Append-only
        self._storage.append(entry)
        subject = f" [{entry.invoice_id} -> {entry.invoice_status.value}]" if entry.invoice_status else ""
        logger.info(
            f"Operator activity: {entry.actor} {entry.action_type} {entry.method} {entry.endpoint} "
            f"-> {entry.status.value}{subject}"
        )

    def get_all(self) -> List[ActivityLogEntry]:
        return list(self._storage)
