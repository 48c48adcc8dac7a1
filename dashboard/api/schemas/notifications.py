from datetime import datetime

from pydantic import BaseModel

from dashboard.entities import NotificationThread
from dashboard.entities import SubjectType
from dashboard.services.notification_service import NotificationSyncManager
from dashboard.services.notification_service import SyncState


class NotificationPayload(BaseModel):
    id: str
    thread_id: int
    repository: str
    subject_type: SubjectType
    subject_title: str
    reason: str
    unread: bool
    updated_at: datetime

    @classmethod
    def from_thread(cls, thread: NotificationThread) -> "NotificationPayload":
        return cls(
            id=thread.id,
            thread_id=thread.thread_id,
            repository=thread.repository.full_name,
            subject_type=thread.subject_type,
            subject_title=thread.subject_title,
            reason=thread.reason,
            unread=thread.unread,
            updated_at=thread.updated_at,
        )


class NotificationsResponse(BaseModel):
    state: SyncState
    is_loading: bool
    error: str | None
    unread_count: int
    last_fetch_time: datetime | None
    notifications: list[NotificationPayload]

    @classmethod
    def from_manager(cls, manager: NotificationSyncManager) -> "NotificationsResponse":
        return cls(
            state=manager.state,
            is_loading=manager.is_loading,
            error=manager.error,
            unread_count=manager.unread_count,
            last_fetch_time=manager.cursor.last_fetch_time,
            notifications=[
                NotificationPayload.from_thread(thread)
                for thread in manager.notifications
            ],
        )
