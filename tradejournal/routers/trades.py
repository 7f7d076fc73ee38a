"""交易记录路由：CRUD、按日期/品种查询、CSV 导入、清空数据"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.core.auth import get_current_user
from tradejournal.models.db import get_session
from tradejournal.schemas.trade import (
    ClearDataResponse,
    ImportRequest,
    ImportResponse,
    TradeCreateRequest,
    TradeUpdateRequest,
    TradeView,
    TradeWriteResponse,
)
from tradejournal.services.csv_import_service import CsvImportService, ImportResult, parse_csv_text
from tradejournal.services.gamification_service import GamificationService
from tradejournal.services.subscription_service import SubscriptionService
from tradejournal.services.trade_service import TradeService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["交易记录"])


def _close_days(*trades) -> set:
    return {t.close_time.date() for t in trades if t is not None and t.close_time is not None}


async def _ensure_trade_quota(session: AsyncSession, user_id: str, adding: int = 1) -> None:
    allowed, message = await SubscriptionService(session).check_subscription_limits(
        user_id, "trade_creation", adding
    )
    if not allowed:
        raise HTTPException(status_code=403, detail=message)


@router.get("/trades", response_model=list[TradeView])
async def list_trades(
    account_id: Optional[int] = Query(None, alias="accountId"),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    trades = await TradeService(session).list_trades(current_user, account_id)
    return [TradeView.model_validate(t) for t in trades]


@router.get("/trades/range", response_model=list[TradeView])
async def list_trades_in_range(
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
    account_id: Optional[int] = Query(None, alias="accountId"),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """按开仓时间区间查询"""
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="endDate must not be before startDate")
    trades = await TradeService(session).list_trades_in_range(current_user, start_date, end_date, account_id)
    return [TradeView.model_validate(t) for t in trades]


@router.get("/trades/symbol/{symbol}", response_model=list[TradeView])
async def list_trades_by_symbol(
    symbol: str,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    trades = await TradeService(session).list_trades_by_symbol(current_user, symbol)
    return [TradeView.model_validate(t) for t in trades]


@router.get("/trades/{trade_id}", response_model=TradeView)
async def get_trade(
    trade_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    trade = await TradeService(session).get_trade(trade_id, current_user)
    if not trade:
        raise HTTPException(status_code=404, detail="Trade not found")
    return TradeView.model_validate(trade)


@router.post("/trades", response_model=TradeWriteResponse, status_code=201)
async def create_trade(
    payload: TradeCreateRequest,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """新增交易，随后刷新每日进度与成就"""
    await _ensure_trade_quota(session, current_user)
    trade = await TradeService(session).create_trade(current_user, payload.model_dump())
    if not trade:
        raise HTTPException(status_code=404, detail="Account not found")
    view = TradeView.model_validate(trade)
    unlocked = await GamificationService(session).after_trades_changed(current_user, _close_days(trade))
    return TradeWriteResponse(trade=view, new_achievements=[a.condition for a in unlocked])


@router.put("/trades/{trade_id}", response_model=TradeWriteResponse)
async def update_trade(
    trade_id: int,
    payload: TradeUpdateRequest,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    svc = TradeService(session)
    before = await svc.get_trade(trade_id, current_user)
    if not before:
        raise HTTPException(status_code=404, detail="Trade not found")
    touched = _close_days(before)

    trade = await svc.update_trade(trade_id, current_user, payload.model_dump(exclude_unset=True))
    if not trade:
        raise HTTPException(status_code=404, detail="Account not found")
    view = TradeView.model_validate(trade)
    unlocked = await GamificationService(session).after_trades_changed(current_user, touched | _close_days(trade))
    return TradeWriteResponse(trade=view, new_achievements=[a.condition for a in unlocked])


@router.delete("/trades/{trade_id}")
async def delete_trade(
    trade_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """删除交易；已解锁的成就不会被撤销"""
    svc = TradeService(session)
    trade = await svc.get_trade(trade_id, current_user)
    if not trade:
        raise HTTPException(status_code=404, detail="Trade not found")
    touched = _close_days(trade)
    await svc.delete_trade(trade_id, current_user)
    await GamificationService(session).after_trades_changed(current_user, touched)
    return {"status": "ok"}


async def _finish_import(session: AsyncSession, user_id: str, result: ImportResult) -> ImportResponse:
    unlocked = await GamificationService(session).after_trades_changed(user_id, _close_days(*result.trades))
    return ImportResponse(
        account_id=result.account_id,
        imported=result.imported,
        skipped=result.skipped,
        errors=result.errors,
        new_achievements=[a.condition for a in unlocked],
    )


@router.post("/trades/import", response_model=ImportResponse)
async def import_trades(
    payload: ImportRequest,
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """导入前端解析好的 CSV 行"""
    if not payload.trades:
        raise HTTPException(status_code=400, detail="No trades to import")
    await _ensure_trade_quota(session, current_user, len(payload.trades))
    result = await CsvImportService(session).import_rows(
        current_user,
        payload.trades,
        account_name=payload.account_name,
        account_number=payload.account_number,
        broker=payload.broker,
        initial_balance=payload.initial_balance,
    )
    return await _finish_import(session, current_user, result)


@router.post("/trades/import/csv", response_model=ImportResponse)
async def import_trades_csv(
    file: UploadFile = File(...),
    account_name: Optional[str] = Form(None, alias="accountName"),
    account_number: Optional[str] = Form(None, alias="accountNumber"),
    broker: Optional[str] = Form(None),
    initial_balance: Optional[float] = Form(None, alias="initialBalance"),
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """上传 MetaTrader 导出的 CSV 文件"""
    raw = await file.read()
    try:
        rows = parse_csv_text(raw.decode("utf-8-sig"))
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded")
    if not rows:
        raise HTTPException(status_code=400, detail="CSV file contains no rows")

    await _ensure_trade_quota(session, current_user, len(rows))
    result = await CsvImportService(session).import_rows(
        current_user,
        rows,
        account_name=account_name,
        account_number=account_number,
        broker=broker,
        initial_balance=initial_balance,
    )
    logger.info(f"CSV upload '{file.filename}' processed for {current_user}")
    return await _finish_import(session, current_user, result)


@router.delete("/data/clear", response_model=ClearDataResponse)
async def clear_data(
    session: AsyncSession = Depends(get_session),
    current_user: str = Depends(get_current_user),
):
    """清空当前用户的账户与交易"""
    deleted = await TradeService(session).clear_user_data(current_user)
    return ClearDataResponse(deleted_trades=deleted)
