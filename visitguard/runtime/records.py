"""Finalized visit records: write-once, process-wide, optionally archived."""

import asyncio
import time

from pydantic import Field

from visitguard.config.logger import get_logger
from visitguard.config.settings import settings
from visitguard.safety.models import SafetyCheck
from visitguard.session.models import FrozenVisitModel, PrescriptionItem, Role
from visitguard.utils.db import archive_record, init_archive, load_archived_record

logger = get_logger(__name__)


class VisitRecord(FrozenVisitModel):
    session_id: str
    start_time: float | None = None
    end_time: float
    role: Role
    prescriptions: list[PrescriptionItem] = Field(default_factory=list)
    patient_history: list[str] = Field(default_factory=list)
    safety_check: SafetyCheck
    clinician_note: str
    patient_follow_up: str
    created_at: float = Field(default_factory=time.time)


class RecordExistsError(Exception):
    """A record for this session id was already written."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Visit record already exists for session {session_id}")
        self.session_id = session_id


class VisitRecordStore:
    def __init__(self, archive_path: str = settings.VISIT_ARCHIVE_PATH) -> None:
        self.archive_path = (archive_path or "").strip()
        self._records: dict[str, VisitRecord] = {}
        self._lock = asyncio.Lock()
        self._archive_ready = False

    async def init(self) -> None:
        if self.archive_path and not self._archive_ready:
            await init_archive(self.archive_path)
            self._archive_ready = True
            logger.info("[records] archive ready path=%s", self.archive_path)

    async def save(self, record: VisitRecord) -> VisitRecord:
        async with self._lock:
            if record.session_id in self._records:
                raise RecordExistsError(record.session_id)
            if self.archive_path:
                await self.init()
                archived = await archive_record(
                    self.archive_path,
                    record.session_id,
                    record.role,
                    record.model_dump(mode="json", by_alias=True),
                    record.created_at,
                )
                if not archived:
                    raise RecordExistsError(record.session_id)
            self._records[record.session_id] = record
        logger.info("[records] saved session_id=%s role=%s", record.session_id, record.role)
        return record

    async def exists(self, session_id: str) -> bool:
        return await self.get(session_id) is not None

    async def get(self, session_id: str) -> VisitRecord | None:
        record = self._records.get(session_id)
        if record is not None or not self.archive_path:
            return record
        await self.init()
        payload = await load_archived_record(self.archive_path, session_id)
        if payload is None:
            return None
        record = VisitRecord.model_validate(payload)
        self._records.setdefault(session_id, record)
        return record
