from typing import Optional

from pydantic import BaseModel


class WorkerNotificationRequest(BaseModel):
    phoneNumber: Optional[str] = None
    workerName: Optional[str] = None
    category: Optional[str] = None

    def missing_fields(self) -> list[str]:
        return [name for name in ("phoneNumber", "workerName", "category") if not getattr(self, name)]


class WorkerNotificationResponse(BaseModel):
    success: bool
    messageId: Optional[str] = None
