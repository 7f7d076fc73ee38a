"""交易报告：生成与历史记录"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import get_current_user
from tradejournal.models.db import get_session
from tradejournal.schemas.report import ReportHistoryListResponse, ReportHistoryView, ReportRequest
from tradejournal.services.report_service import RenderedReport, ReportService
from tradejournal.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/reports", tags=["交易报告"])


def _download(report: Optional[RenderedReport]) -> Response:
    if report is None:
        raise HTTPException(status_code=400, detail="No trades found for the selected period")
    return Response(
        content=report.content,
        media_type=report.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{report.file_name}"',
            "X-Report-Id": str(report.history_id),
        },
    )


async def _ensure_reports_allowed(session: AsyncSession, user_id: str) -> None:
    allowed, message = await SubscriptionService(session).check_subscription_limits(user_id, "advanced_reports")
    if not allowed:
        raise HTTPException(status_code=403, detail=message)


@router.post("/pdf")
async def generate_text_report(
    payload: Optional[ReportRequest] = None,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """纯文本报告下载"""
    payload = payload or ReportRequest()
    await _ensure_reports_allowed(session, current_user)
    report = await ReportService(session).generate_report(
        current_user, "pdf", payload.start_date, payload.end_date
    )
    return _download(report)


@router.get("/html")
async def generate_html_report(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    await _ensure_reports_allowed(session, current_user)
    report = await ReportService(session).generate_report(current_user, "html", start_date, end_date)
    return _download(report)


@router.post("/comprehensive-analysis")
async def generate_comprehensive_report(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """全部历史交易的综合分析报告"""
    await _ensure_reports_allowed(session, current_user)
    report = await ReportService(session).generate_report(current_user, "comprehensive")
    return _download(report)


@router.get("/history", response_model=ReportHistoryListResponse)
async def list_report_history(
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    items = await ReportService(session).list_history(current_user, limit)
    views = [ReportHistoryView.model_validate(i, from_attributes=True) for i in items]
    return ReportHistoryListResponse(items=views, total=len(views))


@router.get("/history/{report_id}", response_model=ReportHistoryView)
async def get_report_history(
    report_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    item = await ReportService(session).get_history(current_user, report_id)
    if not item:
        raise HTTPException(status_code=404, detail="Report not found")
    return ReportHistoryView.model_validate(item, from_attributes=True)


@router.delete("/history/{report_id}")
async def delete_report_history(
    report_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    ok = await ReportService(session).delete_history(current_user, report_id)
    if not ok:
        raise HTTPException(status_code=404, detail="Report not found")
    return {"status": "ok"}
