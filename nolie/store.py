import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .db import get_db
from .risk import MEDIUM_PLAGIARISM_THRESHOLD, RiskLevel, risk_for_results, summary_fields

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "created_at": models.AnalysisReport.created_at,
    "file_name": models.AnalysisReport.file_name,
    "file_size": models.AnalysisReport.file_size,
    "plagiarism_score": models.AnalysisReport.plagiarism_score,
    "risk_level": models.AnalysisReport.risk_level,
}


class PersistenceError(Exception):
    pass


class InvalidQuery(ValueError):
    pass


@dataclass
class ReportQuery:
    page: int = 1
    limit: int = 10
    risk_level: Optional[RiskLevel] = None
    sort_by: str = "created_at"
    sort_order: str = "desc"
    search: Optional[str] = None


@dataclass
class ReportPage:
    reports: List[models.AnalysisReport]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class ReportStore(Protocol):
    def insert(
        self,
        owner_id: int,
        file_name: str,
        file_type: str,
        file_size: int,
        results: Dict[str, Any],
    ) -> models.AnalysisReport:
        ...

    def query_by_owner(self, owner_id: int, query: ReportQuery) -> ReportPage:
        ...

    def get(self, owner_id: int, report_id: int) -> Optional[models.AnalysisReport]:
        ...

    def all_for_owner(self, owner_id: int) -> List[models.AnalysisReport]:
        ...

    def attach_html(self, report: models.AnalysisReport, html: str) -> models.AnalysisReport:
        ...

    def stats(self, owner_id: int, now: Optional[datetime] = None) -> dict:
        ...


class SqlReportStore:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Database error while %s", action, exc_info=True)
            raise PersistenceError(f"Failed to {action}: {exc}") from exc

    def insert(
        self,
        owner_id: int,
        file_name: str,
        file_type: str,
        file_size: int,
        results: Dict[str, Any],
    ) -> models.AnalysisReport:
        score, forgery_detected, privacy_count = summary_fields(results)
        report = models.AnalysisReport(
            user_id=owner_id,
            file_name=file_name,
            file_type=file_type or "unknown",
            file_size=file_size or 0,
            analysis_results=results,
            plagiarism_score=score,
            forgery_detected=forgery_detected,
            privacy_issues_count=privacy_count,
            risk_level=risk_for_results(results).value,
        )
        self.db.add(report)
        self._commit("save report")
        self.db.refresh(report)
        logger.info("Saved report %s for user %s (%s)", report.id, owner_id, report.risk_level)
        return report

    def _owned(self, owner_id: int):
        return self.db.query(models.AnalysisReport).filter(
            models.AnalysisReport.user_id == owner_id
        )

    def query_by_owner(self, owner_id: int, query: ReportQuery) -> ReportPage:
        column = SORTABLE_COLUMNS.get(query.sort_by)
        if column is None:
            raise InvalidQuery(f"Cannot sort by '{query.sort_by}'")
        if query.sort_order not in ("asc", "desc"):
            raise InvalidQuery("sortOrder must be 'asc' or 'desc'")
        if query.page < 1 or query.limit < 1:
            raise InvalidQuery("page and limit must be positive")

        base = self._owned(owner_id)
        if query.risk_level is not None:
            base = base.filter(models.AnalysisReport.risk_level == query.risk_level.value)
        if query.search and query.search.strip():
            pattern = f"%{query.search.strip()}%"
            base = base.filter(models.AnalysisReport.file_name.ilike(pattern))

        try:
            total = base.count()
            ordering = column.asc() if query.sort_order == "asc" else column.desc()
            reports = (
                base.order_by(ordering, models.AnalysisReport.id.desc())
                .offset((query.page - 1) * query.limit)
                .limit(query.limit)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.error("Database error while fetching reports", exc_info=True)
            raise PersistenceError(f"Failed to fetch reports: {exc}") from exc

        logger.info("Found %d reports for user %s", len(reports), owner_id)
        return ReportPage(reports=reports, page=query.page, limit=query.limit, total=total)

    def get(self, owner_id: int, report_id: int) -> Optional[models.AnalysisReport]:
        return self._owned(owner_id).filter(models.AnalysisReport.id == report_id).first()

    def all_for_owner(self, owner_id: int) -> List[models.AnalysisReport]:
        return self._owned(owner_id).order_by(models.AnalysisReport.created_at.desc()).all()

    def attach_html(self, report: models.AnalysisReport, html: str) -> models.AnalysisReport:
        report.report_html = html
        self._commit("attach report")
        self.db.refresh(report)
        return report

    def stats(self, owner_id: int, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()
        owned = self._owned(owner_id)
        reports = owned.order_by(models.AnalysisReport.created_at.desc()).all()

        issues = 0
        for r in reports:
            issues += int(r.plagiarism_score > MEDIUM_PLAGIARISM_THRESHOLD)
            issues += int(bool(r.forgery_detected))
            issues += int(r.privacy_issues_count > 0)

        risk_counts = dict(
            owned.with_entities(models.AnalysisReport.risk_level, func.count(models.AnalysisReport.id))
            .group_by(models.AnalysisReport.risk_level)
            .all()
        )
        high = risk_counts.get("HIGH", 0)
        medium = risk_counts.get("MEDIUM", 0)
        low = risk_counts.get("LOW", 0)
        if high > medium and high > low:
            avg_risk = RiskLevel.HIGH
        elif medium > low:
            avg_risk = RiskLevel.MEDIUM
        else:
            avg_risk = RiskLevel.LOW

        week_ago = now - timedelta(days=7)
        return {
            "total_analyses": len(reports),
            "reports_generated": sum(1 for r in reports if r.report_html),
            "issues_detected": issues,
            "recent_activity": sum(1 for r in reports if r.created_at and r.created_at > week_ago),
            "avg_risk_level": avg_risk,
            "recent": reports[:5],
        }


def get_report_store(db: Session = Depends(get_db)) -> ReportStore:
    return SqlReportStore(db)
