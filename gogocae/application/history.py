from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from gogocae.domain import RequestStatus, StatusHistoryEntry
from gogocae.infrastructure.datastore import STATUS_HISTORY, Datastore


class HistoryRecorder:
    """Append-only audit trail of status transitions.

    Every call writes exactly one row; datastore failures propagate to the caller.
    """

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    def record(
        self,
        request_id: str,
        changed_by: str,
        from_status: RequestStatus | None,
        to_status: RequestStatus,
        *,
        changed_at: datetime,
    ) -> StatusHistoryEntry:
        entry = StatusHistoryEntry(
            request_id=request_id,
            changed_by=changed_by,
            from_status=from_status,
            to_status=to_status,
            changed_at=changed_at,
        )
        return self.record_entry(entry)

    def record_entry(self, entry: StatusHistoryEntry) -> StatusHistoryEntry:
        row = self._datastore.insert(STATUS_HISTORY, entry.to_row())
        return replace(entry, id=str(row["id"]))

    def list_for_request(self, request_id: str) -> list[StatusHistoryEntry]:
        rows = self._datastore.query(STATUS_HISTORY, {"request_id": request_id}, order_by="changed_at")
        return [StatusHistoryEntry.from_row(row) for row in rows]
