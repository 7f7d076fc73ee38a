"""
行情与财经新闻服务

- 实时报价 / 历史日线：TraderMade
- 新闻与情绪：Alpha Vantage NEWS_SENTIMENT
- 交易信号：报价 + SMA20 趋势
- 经济日历：固定事件模板，按宏观新闻情绪调整重要性
未配置 API Key、限流或网络错误时返回模拟数据（is_simulated=True）。
"""
from __future__ import annotations

import logging
import random
import statistics
import time
from datetime import date, datetime, timedelta
from typing import Optional

import httpx

from tradejournal.core.cache import cache
from tradejournal.core.config import settings

logger = logging.getLogger(__name__)

BASE_RATES = {
    "EURUSD": 1.0850,
    "GBPUSD": 1.2650,
    "USDJPY": 150.25,
    "USDCHF": 0.8750,
    "AUDUSD": 0.6850,
    "USDCAD": 1.3520,
    "NZDUSD": 0.6150,
    "EURGBP": 0.8580,
    "EURJPY": 163.15,
    "GBPJPY": 190.05,
}

DEFAULT_SYMBOLS = ["EURUSD", "GBPUSD", "USDJPY", "USDCHF", "AUDUSD"]
SIGNAL_SYMBOLS = ["EURUSD", "GBPUSD", "USDJPY"]

NEWS_TOPICS = {
    "general": ["financial_markets", "forex"],
    "forex": ["forex"],
    "crypto": ["cryptocurrency", "blockchain"],
    "economy": ["economy_fiscal", "economy_monetary"],
}


class MarketDataError(Exception):
    """行情源返回了无法使用的数据"""


def simulated_quotes(symbols: list[str]) -> list[dict]:
    """基准汇率 ±0.5% 随机波动，点差 1 pip"""
    now_ms = int(time.time() * 1000)
    quotes = []
    for symbol in symbols:
        base = BASE_RATES.get(symbol, 1.0)
        mid = base + base * (random.random() - 0.5) * 0.01
        spread = base * 0.0001
        quotes.append({
            "instrument": symbol,
            "bid": mid - spread / 2,
            "ask": mid + spread / 2,
            "mid": mid,
            "spread": spread,
            "timestamp": now_ms,
        })
    return quotes


def simulated_history(symbol: str, days: int = 30, end: Optional[date] = None) -> list[dict]:
    end = end or date.today()
    price = BASE_RATES.get(symbol, 1.0)
    daily_range = price * 0.01
    rows = []
    for i in range(days, 0, -1):
        price *= 1 + (random.random() - 0.5) * 0.02
        open_ = price + (random.random() - 0.5) * daily_range
        close = price + (random.random() - 0.5) * daily_range
        rows.append({
            "date": (end - timedelta(days=i)).isoformat(),
            "open": round(open_, 5),
            "high": round(max(open_, close) + random.random() * daily_range * 0.5, 5),
            "low": round(min(open_, close) - random.random() * daily_range * 0.5, 5),
            "close": round(close, 5),
        })
    return rows


def simulated_news() -> list[dict]:
    now = datetime.utcnow()
    items = [
        ("EUR/USD steady after euro-area inflation data",
         "The pair holds near recent levels as inflation prints match expectations ahead of the next ECB meeting.",
         "forex", 0.1, "Neutral", 2),
        ("GBP/USD slips on UK growth worries",
         "Sterling weakens against the dollar after reports point to slower first-quarter growth.",
         "forex", -0.3, "Bearish", 4),
        ("Dollar firms as Treasury yields climb",
         "The greenback gains across the board while investors price a longer pause in rate cuts.",
         "economy", 0.25, "Somewhat-Bullish", 6),
        ("Yen weakens as BoJ keeps policy unchanged",
         "USD/JPY extends gains after the Bank of Japan leaves its ultra-loose stance in place.",
         "forex", 0.2, "Somewhat-Bullish", 9),
        ("Commodity currencies track risk sentiment",
         "AUD and NZD move with equities as traders weigh Chinese demand signals.",
         "forex", 0.0, "Neutral", 12),
    ]
    return [
        {
            "title": title,
            "summary": summary,
            "url": "#",
            "time_published": (now - timedelta(hours=hours)).strftime("%Y%m%dT%H%M%S"),
            "source": "Market Wire",
            "category": category,
            "overall_sentiment_score": score,
            "overall_sentiment_label": label,
            "ticker_sentiment": [],
        }
        for title, summary, category, score, label, hours in items
    ]


def analyze_trend(history: list[dict]) -> dict:
    """基于 SMA20 与收益率标准差的简单趋势判断"""
    if len(history) < 20:
        raise MarketDataError("Insufficient data for trend analysis")

    closes = [row["close"] for row in history]
    sma_now = sum(closes[-20:]) / 20
    sma_prev = sum(closes[-21:-1]) / 20 if len(closes) > 20 else sma_now
    price = closes[-1]

    trend = "sideways"
    if price > sma_now and sma_now > sma_prev:
        trend = "up"
    elif price < sma_now and sma_now < sma_prev:
        trend = "down"

    returns = [(b - a) / a for a, b in zip(closes, closes[1:]) if a]
    volatility = statistics.pstdev(returns) * 100 if len(returns) > 1 else 0.0

    if trend == "up" and volatility < 2:
        recommendation = "Stable uptrend. Consider long positions with a tight stop loss."
    elif trend == "down" and volatility < 2:
        recommendation = "Stable downtrend. Consider short positions with strict risk management."
    elif volatility > 3:
        recommendation = "High volatility. Reduce position size and widen stops."
    else:
        recommendation = "Ranging market. Trade between support and resistance."

    return {
        "trend": trend,
        "volatility": round(volatility, 4),
        "support": min(row["low"] for row in history[-20:]),
        "resistance": max(row["high"] for row in history[-20:]),
        "recommendation": recommendation,
    }


def build_signal(symbol: str, price: float, analysis: dict) -> dict:
    """上升趋势且价格在支撑之上 -> BUY；下降趋势且价格在阻力之下 -> SELL"""
    calm = analysis["volatility"] < 2
    if analysis["trend"] == "up" and price > analysis["support"]:
        signal, strength = "BUY", 80 if calm else 60
    elif analysis["trend"] == "down" and price < analysis["resistance"]:
        signal, strength = "SELL", 80 if calm else 60
    else:
        signal, strength = "NEUTRAL", 40
    return {
        "symbol": symbol,
        "signal": signal,
        "strength": strength,
        "current_price": price,
        **analysis,
        "timestamp": int(time.time() * 1000),
    }


# (距现在小时数, 国家, 事件, 影响, 预期, 前值, 货币, 重要性 1-5, 类别)
CALENDAR_TEMPLATE = [
    (1, "United States", "Fed Interest Rate Decision", "High", "5.25%", "5.00%", "USD", 5, "Monetary Policy"),
    (3, "Eurozone", "Consumer Price Index (CPI)", "Medium", "2.4%", "2.6%", "EUR", 4, "Inflation"),
    (5, "United Kingdom", "Employment Data", "Medium", "4.2%", "4.4%", "GBP", 3, "Employment"),
    (24, "United States", "Gross Domestic Product (GDP)", "High", "2.8%", "2.6%", "USD", 5, "Growth"),
    (26, "Japan", "Purchasing Managers Index (PMI)", "Low", "49.8", "50.2", "JPY", 2, "Manufacturing"),
    (48, "United States", "Non-Farm Payrolls (NFP)", "High", "185K", "175K", "USD", 5, "Employment"),
    (72, "Australia", "RBA Interest Rate Decision", "Medium", "4.35%", "4.35%", "AUD", 3, "Monetary Policy"),
]


def simulated_calendar(now: datetime, horizon_hours: int = 7 * 24) -> list[dict]:
    events = []
    for hours, country, name, impact, forecast, previous, currency, importance, category in CALENDAR_TEMPLATE:
        if hours > horizon_hours:
            continue
        events.append({
            "time": (now + timedelta(hours=hours)).replace(second=0, microsecond=0).isoformat(),
            "country": country,
            "event": name,
            "impact": impact,
            "forecast": forecast,
            "previous": previous,
            "actual": None,
            "currency": currency,
            "importance": importance,
            "category": category,
        })
    return events


def news_insights(feed: list[dict]) -> dict:
    """统计宏观新闻中 Fed / 通胀 / 就业话题的情绪强度"""
    insights = {"fed_sentiment": 0.0, "inflation_concern": 0.0, "employment_focus": 0.0, "volatile_articles": 0}
    for article in feed:
        content = f"{article.get('title', '')} {article.get('summary', '')}".lower()
        try:
            score = float(article.get("overall_sentiment_score") or 0)
        except (TypeError, ValueError):
            score = 0.0
        if "fed" in content or "federal reserve" in content:
            insights["fed_sentiment"] += score
        if "inflation" in content or "cpi" in content:
            insights["inflation_concern"] += abs(score)
        if "employment" in content or "jobs" in content:
            insights["employment_focus"] += abs(score)
        if abs(score) > 0.3:
            insights["volatile_articles"] += 1
    return insights


def enhance_events_with_news(events: list[dict], insights: dict) -> list[dict]:
    enhanced = []
    for event in events:
        event = dict(event)
        if "Fed" in event["event"] and insights["fed_sentiment"] != 0:
            event["importance"] = min(5, event["importance"] + 1)
            event["impact"] = "High"
        if event["category"] == "Inflation" and insights["inflation_concern"] > 0.2:
            event["importance"] = min(5, event["importance"] + 1)
        if event["category"] == "Employment" and insights["employment_focus"] > 0.2:
            event["importance"] = min(5, event["importance"] + 1)
        enhanced.append(event)
    return enhanced


class MarketDataService:
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    async def _get_json(self, url: str, params: dict) -> dict:
        if self._client is not None:
            resp = await self._client.get(url, params=params)
        else:
            async with httpx.AsyncClient(timeout=settings.MARKET_TIMEOUT_SECONDS) as client:
                resp = await client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()

    async def get_live_quotes(self, symbols: list[str]) -> dict:
        symbols = [s.strip().upper() for s in symbols if s.strip()] or DEFAULT_SYMBOLS
        if not settings.TRADERMADE_API_KEY:
            return {"quotes": simulated_quotes(symbols), "is_simulated": True}

        cache_key = f"market:quotes:{','.join(symbols)}"
        cached = await cache.get(cache_key)
        if cached:
            return cached

        try:
            data = await self._get_json(
                f"{settings.TRADERMADE_API_BASE}/live",
                {"currency": ",".join(symbols), "api_key": settings.TRADERMADE_API_KEY},
            )
            raw = data.get("quotes")
            if not raw or len(raw) < len(symbols):
                raise MarketDataError("Invalid response format from TraderMade")
            now_ms = int(time.time() * 1000)
            quotes = []
            # TraderMade 按请求顺序返回报价
            for symbol, quote in zip(symbols, raw):
                bid, ask = float(quote["bid"]), float(quote["ask"])
                quotes.append({
                    "instrument": symbol,
                    "bid": bid,
                    "ask": ask,
                    "mid": float(quote.get("mid", (bid + ask) / 2)),
                    "spread": ask - bid,
                    "timestamp": now_ms,
                })
        except (httpx.HTTPError, MarketDataError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Live quotes unavailable, using simulated data: {e}")
            return {"quotes": simulated_quotes(symbols), "is_simulated": True}

        result = {"quotes": quotes, "is_simulated": False}
        await cache.set(cache_key, result, expire=settings.MARKET_CACHE_TTL_SECONDS)
        return result

    async def get_historical(self, symbol: str, days: int = 30, period: str = "1D") -> dict:
        symbol = symbol.upper()
        if not settings.TRADERMADE_API_KEY:
            return {"symbol": symbol, "data": simulated_history(symbol, days), "is_simulated": True}

        cache_key = f"market:history:{symbol}:{period}:{days}"
        cached = await cache.get(cache_key)
        if cached:
            return cached

        end = date.today()
        try:
            data = await self._get_json(
                f"{settings.TRADERMADE_API_BASE}/timeseries",
                {
                    "currency": symbol,
                    "api_key": settings.TRADERMADE_API_KEY,
                    "start_date": (end - timedelta(days=days)).isoformat(),
                    "end_date": end.isoformat(),
                    "format": "records",
                    "period": period,
                },
            )
            raw = data.get("quotes")
            if not isinstance(raw, list) or not raw:
                raise MarketDataError(f"No historical data for {symbol}")
            rows = [
                {
                    "date": q["date"],
                    "open": float(q["open"]),
                    "high": float(q["high"]),
                    "low": float(q["low"]),
                    "close": float(q["close"]),
                }
                for q in raw
            ]
        except (httpx.HTTPError, MarketDataError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Historical data unavailable for {symbol}, using simulated data: {e}")
            return {"symbol": symbol, "data": simulated_history(symbol, days), "is_simulated": True}

        result = {"symbol": symbol, "data": rows, "is_simulated": False}
        await cache.set(cache_key, result, expire=settings.MARKET_CACHE_TTL_SECONDS)
        return result

    async def get_analysis(self, symbol: str) -> dict:
        history = await self.get_historical(symbol, days=60)
        return {
            "symbol": history["symbol"],
            "analysis": analyze_trend(history["data"]),
            "is_simulated": history["is_simulated"],
        }

    async def get_news(self, category: str = "general", limit: int = 20) -> dict:
        topics = NEWS_TOPICS.get(category, NEWS_TOPICS["general"])
        if not settings.ALPHA_VANTAGE_API_KEY:
            articles = simulated_news()[:limit]
            return {"category": category, "articles": articles, "total": len(articles), "is_simulated": True}

        cache_key = f"market:news:{category}:{limit}"
        cached = await cache.get(cache_key)
        if cached:
            return cached

        try:
            data = await self._get_json(
                settings.ALPHA_VANTAGE_API_BASE,
                {
                    "function": "NEWS_SENTIMENT",
                    "topics": ",".join(topics),
                    "limit": limit,
                    "apikey": settings.ALPHA_VANTAGE_API_KEY,
                },
            )
            # 限流时 Alpha Vantage 返回 200 + Note / Information
            note = data.get("Error Message") or data.get("Note") or data.get("Information")
            if note:
                raise MarketDataError(note)
            feed = data.get("feed")
            if not isinstance(feed, list) or not feed:
                raise MarketDataError("Empty news feed")
        except (httpx.HTTPError, MarketDataError, ValueError) as e:
            logger.warning(f"News unavailable, using simulated data: {e}")
            articles = simulated_news()[:limit]
            return {"category": category, "articles": articles, "total": len(articles), "is_simulated": True}

        result = {"category": category, "articles": feed[:limit], "total": len(feed), "is_simulated": False}
        await cache.set(cache_key, result, expire=settings.MARKET_CACHE_TTL_SECONDS)
        return result

    async def get_signals(self, symbols: list[str]) -> dict:
        """报价 + 趋势分析 -> BUY / SELL / NEUTRAL 信号"""
        symbols = [s.strip().upper() for s in symbols if s.strip()] or SIGNAL_SYMBOLS
        quotes = await self.get_live_quotes(symbols)
        mids = {q["instrument"]: q["mid"] for q in quotes["quotes"]}
        is_simulated = quotes["is_simulated"]

        signals = []
        for symbol in symbols:
            try:
                result = await self.get_analysis(symbol)
            except MarketDataError as e:
                logger.warning(f"Skipping signal for {symbol}: {e}")
                continue
            is_simulated = is_simulated or result["is_simulated"]
            signals.append(build_signal(symbol, mids[symbol], result["analysis"]))
        return {"signals": signals, "is_simulated": is_simulated}

    async def get_economic_calendar(self, days: int = 7) -> dict:
        """未来 days 天的经济事件；有 Alpha Vantage Key 时按宏观新闻调整重要性"""
        now = datetime.utcnow()
        events = simulated_calendar(now, horizon_hours=days * 24)
        if not settings.ALPHA_VANTAGE_API_KEY:
            return {"events": events, "total": len(events), "is_simulated": True, "news_adjusted": False}

        try:
            data = await self._get_json(
                settings.ALPHA_VANTAGE_API_BASE,
                {
                    "function": "NEWS_SENTIMENT",
                    "topics": "economy_fiscal,economy_monetary,earnings",
                    "limit": 50,
                    "apikey": settings.ALPHA_VANTAGE_API_KEY,
                },
            )
            note = data.get("Error Message") or data.get("Note") or data.get("Information")
            if note:
                raise MarketDataError(note)
            feed = data.get("feed")
            if not isinstance(feed, list):
                raise MarketDataError("Empty news feed")
        except (httpx.HTTPError, MarketDataError, ValueError) as e:
            logger.warning(f"Economic news unavailable, using plain calendar: {e}")
            return {"events": events, "total": len(events), "is_simulated": True, "news_adjusted": False}

        # 事件时间表本身仍是模板数据
        events = enhance_events_with_news(events, news_insights(feed))
        return {"events": events, "total": len(events), "is_simulated": True, "news_adjusted": True}
