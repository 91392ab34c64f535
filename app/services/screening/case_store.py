"""
Case storage used by persisting analyses.

The pipeline only needs the CaseStore protocol; SqlCaseStore writes the
cases / case_documents / violations / criminal_records tables.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.core.utc import to_iso
from app.models.models import Case, CaseDocument, CaseStatus, CriminalRecord, Violation
from app.services.screening.models import DocumentSummary, IncidentRecord, StatuteEvaluation

logger = logging.getLogger(__name__)


class CaseStore(Protocol):

    async def create_case(self, fields: Dict[str, Any]) -> str:
        ...

    async def record_document(self, case_id: str, summary: DocumentSummary) -> None:
        ...

    async def record_violations(self, case_id: str, evaluations: List[StatuteEvaluation]) -> None:
        ...

    async def record_criminal_history(self, case_id: str, incidents: List[IncidentRecord]) -> None:
        ...

    async def update_status(self, case_id: str, status: CaseStatus, fields: Optional[Dict[str, Any]] = None) -> None:
        ...


class SqlCaseStore:
    """CaseStore over the async session factory."""

    CASE_FIELDS = ("case_number", "defendant_name", "narrative", "error")

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_case(self, fields: Dict[str, Any]) -> str:
        values = {k: v for k, v in fields.items() if k in self.CASE_FIELDS}
        async with self.session_factory() as session:
            case = Case(status=CaseStatus.processing, **values)
            session.add(case)
            await session.commit()
            logger.info("Created case %s", case.id)
            return case.id

    async def record_document(self, case_id: str, summary: DocumentSummary) -> None:
        async with self.session_factory() as session:
            session.add(CaseDocument(
                case_id=case_id,
                position=summary.index,
                file_name=summary.file_name,
                media_type=summary.media_type,
                page_count=summary.page_count,
                text_length=summary.text_length,
                image_count=summary.image_count,
                ocr_pages=summary.ocr_pages,
                scanned=summary.scanned,
                error=summary.error,
            ))
            await session.commit()

    async def record_violations(self, case_id: str, evaluations: List[StatuteEvaluation]) -> None:
        async with self.session_factory() as session:
            for evaluation in evaluations:
                session.add(Violation(
                    case_id=case_id,
                    code=evaluation.code,
                    jurisdiction=evaluation.jurisdiction.value,
                    source=evaluation.jurisdiction.source_label,
                    title=evaluation.title,
                    url=evaluation.url,
                    overall=evaluation.result.overall.value,
                    elements_json=json.dumps(evaluation.result.to_dict()),
                ))
            await session.commit()

    async def record_criminal_history(self, case_id: str, incidents: List[IncidentRecord]) -> None:
        async with self.session_factory() as session:
            for incident in incidents:
                for charge in incident.charges:
                    session.add(CriminalRecord(
                        case_id=case_id,
                        incident_label=incident.label,
                        offense=charge.charge_text,
                        arrest_date=charge.date_of_arrest,
                        tracking_number=charge.offense_tracking_number,
                    ))
            await session.commit()

    async def update_status(self, case_id: str, status: CaseStatus, fields: Optional[Dict[str, Any]] = None) -> None:
        async with self.session_factory() as session:
            case = await session.get(Case, case_id)
            if case is None:
                raise LookupError(f"case {case_id} not found")
            case.status = status
            for key, value in (fields or {}).items():
                if key in self.CASE_FIELDS:
                    setattr(case, key, value)
            await session.commit()
        logger.info("Case %s -> %s", case_id, status.value)

    async def get_case(self, case_id: str) -> Optional[Dict[str, Any]]:
        """Case row with its documents, violations and priors, as a dict."""
        async with self.session_factory() as session:
            case = await session.scalar(
                select(Case)
                .where(Case.id == case_id)
                .options(
                    selectinload(Case.documents),
                    selectinload(Case.violations),
                    selectinload(Case.criminal_records),
                )
            )
            if case is None:
                return None

            return {
                "id": case.id,
                "case_number": case.case_number,
                "defendant_name": case.defendant_name,
                "status": case.status.value,
                "error": case.error,
                "created_at": to_iso(case.created_at),
                "documents": [
                    {
                        "position": d.position,
                        "file_name": d.file_name,
                        "media_type": d.media_type,
                        "page_count": d.page_count,
                        "text_length": d.text_length,
                        "image_count": d.image_count,
                        "ocr_pages": d.ocr_pages,
                        "scanned": d.scanned,
                        "error": d.error,
                    }
                    for d in sorted(case.documents, key=lambda d: d.position)
                ],
                "violations": [
                    {
                        "code": v.code,
                        "jurisdiction": v.jurisdiction,
                        "source": v.source,
                        "title": v.title,
                        "url": v.url,
                        "overall": v.overall,
                        "elements": json.loads(v.elements_json),
                    }
                    for v in sorted(case.violations, key=lambda v: v.id)
                ],
                "criminal_records": [
                    {
                        "incident_label": r.incident_label,
                        "offense": r.offense,
                        "arrest_date": r.arrest_date,
                        "tracking_number": r.tracking_number,
                    }
                    for r in sorted(case.criminal_records, key=lambda r: r.id)
                ],
            }
