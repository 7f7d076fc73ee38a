"""交易报告：纯文本报告与 HTML 报告（Jinja2 渲染），并记录生成历史"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy import delete, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.engine.metrics_aggregator import calculate_trading_metrics
from tradejournal.models.report_history import ReportHistory
from tradejournal.schemas.analysis import TradingAnalysis
from tradejournal.services.ai_analysis_service import analyze_trading_performance, build_trading_stats, strip_markdown
from tradejournal.services.ai_client_manager import call_ai_with_fallback
from tradejournal.services.gamification_service import GamificationService
from tradejournal.services.trade_service import TradeService

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
)


@dataclass
class RenderedReport:
    history_id: int
    file_name: str
    media_type: str
    content: str


class ReportService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.trades = TradeService(session)

    async def _trades_for(self, user_id: str, start: Optional[datetime], end: Optional[datetime]):
        if start is None and end is None:
            trades = await self.trades.list_trades(user_id)
            if trades:
                start = min(t.open_time for t in trades)
                end = max(t.open_time for t in trades)
            return trades, start or datetime.utcnow(), end or datetime.utcnow()
        end = end or datetime.utcnow()
        start = start or end - timedelta(days=30)
        return await self.trades.list_trades_in_range(user_id, start, end), start, end

    async def _narrative(self, trades: Sequence, analysis: TradingAnalysis) -> Optional[str]:
        """AI 撰写的教练点评；不可用时返回 None"""
        stats = build_trading_stats(trades)
        prompt = (
            "Write a short coaching review (3 paragraphs, under 300 words) for this trader. "
            f"Statistics: {stats}. Strengths: {analysis.strengths}. Weaknesses: {analysis.weaknesses}."
        )
        content, _ = await call_ai_with_fallback(
            messages=[{"role": "user", "content": prompt}],
            temperature=0.6,
            max_tokens=700,
        )
        return strip_markdown(content) if content else None

    async def _render(self, user_id: str, template: str, start, end, trades, title: str) -> tuple[str, dict]:
        metrics = calculate_trading_metrics(trades)
        analysis = await analyze_trading_performance(trades)
        narrative = await self._narrative(trades, analysis)
        level = await GamificationService(self.session).get_level_info(user_id)

        content = _env.get_template(template).render(
            title=title,
            generated_at=datetime.utcnow(),
            start=start,
            end=end,
            metrics=metrics,
            analysis=analysis,
            level=level,
            trades=trades,
            narrative=narrative,
            narrative_paragraphs=[p for p in (narrative or "").split("\n\n") if p.strip()],
        )
        summary = {
            "totalTrades": metrics.total_trades,
            "totalProfit": metrics.total_profit,
            "winRate": metrics.win_rate,
            "profitFactor": metrics.profit_factor,
            "overallScore": analysis.overall_score,
            "aiProvider": analysis.provider,
        }
        return content, summary

    async def generate_report(
        self,
        user_id: str,
        report_type: str = "pdf",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Optional[RenderedReport]:
        """生成报告；范围内没有交易时返回 None"""
        trades, start, end = await self._trades_for(user_id, start, end)
        if not trades:
            return None

        is_html = report_type == "html"
        today = datetime.utcnow().strftime("%Y-%m-%d")
        if report_type == "comprehensive":
            title = "Comprehensive Trading Analysis"
            file_name = f"trading-analysis-complete-{today}.txt"
        elif is_html:
            title = "Trading Performance Report"
            file_name = f"trading-report-{today}.html"
        else:
            title = "Trading Performance Report"
            file_name = f"trading-report-{today}.txt"

        content, summary = await self._render(
            user_id, "report.html" if is_html else "report.txt", start, end, trades, title
        )
        history = ReportHistory(
            user_id=user_id,
            report_type=report_type,
            title=title,
            file_name=file_name,
            file_size=len(content.encode("utf-8")),
            date_range={"start": start.isoformat(), "end": end.isoformat()},
            report_data=summary,
        )
        self.session.add(history)
        await self.session.commit()
        await self.session.refresh(history)
        logger.info(f"Report {history.id} ({report_type}) generated for {user_id}")

        return RenderedReport(
            history_id=history.id,
            file_name=file_name,
            media_type="text/html; charset=utf-8" if is_html else "text/plain; charset=utf-8",
            content=content,
        )

    async def list_history(self, user_id: str, limit: int = 50) -> list[ReportHistory]:
        stmt = (
            select(ReportHistory)
            .where(ReportHistory.user_id == user_id)
            .order_by(desc(ReportHistory.created_at), desc(ReportHistory.id))
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_history(self, user_id: str, report_id: int) -> Optional[ReportHistory]:
        result = await self.session.execute(
            select(ReportHistory).where(ReportHistory.id == report_id, ReportHistory.user_id == user_id)
        )
        return result.scalars().first()

    async def delete_history(self, user_id: str, report_id: int) -> bool:
        result = await self.session.execute(
            delete(ReportHistory).where(ReportHistory.id == report_id, ReportHistory.user_id == user_id)
        )
        await self.session.commit()
        return bool(result.rowcount)
