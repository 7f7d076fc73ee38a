"""报告生成历史"""
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, JSON, String, text

from tradejournal.models.db import Base


class ReportHistory(Base):
    __tablename__ = "report_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    report_type = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=True)
    date_range = Column(JSON, nullable=True)
    report_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        Index("idx_report_user_created", "user_id", "created_at"),
    )
