"""报告 schemas"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from tradejournal.schemas.metrics import CamelModel


class ReportRequest(CamelModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    type: str = "complete"


class ReportHistoryView(BaseModel):
    id: int
    report_type: str
    title: str
    file_name: str
    file_size: Optional[int] = None
    date_range: Optional[dict[str, Any]] = None
    report_data: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None


class ReportHistoryListResponse(BaseModel):
    status: str = "ok"
    total: int = 0
    items: list[ReportHistoryView] = []
