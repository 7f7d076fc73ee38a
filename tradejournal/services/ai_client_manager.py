"""
AI 客户端管理器 - 统一管理 OpenAI 与 DeepSeek

1. OpenAI 主力 + DeepSeek 兜底，按 AI_PROVIDERS / AI_PREFERRED_PROVIDER 排序
2. 熔断：配额/认证/超时错误时临时屏蔽该提供商
3. 全部失败时返回 (None, None)，由调用方降级到规则引擎
"""
import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from openai import AsyncOpenAI

from tradejournal.core.config import settings

logger = logging.getLogger(__name__)


class AIProvider(str, Enum):
    OPENAI = "openai"
    DEEPSEEK = "deepseek"


_clients: Dict[AIProvider, Any] = {}

# 熔断器：提供商 -> 恢复时间戳
_provider_circuit_breaker: Dict[AIProvider, float] = {}


def _init_openai_client() -> Optional[AsyncOpenAI]:
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not configured")
        return None
    kwargs = {"api_key": settings.OPENAI_API_KEY, "timeout": settings.OPENAI_TIMEOUT_SECONDS}
    if settings.OPENAI_API_BASE:
        kwargs["base_url"] = settings.OPENAI_API_BASE
    client = AsyncOpenAI(**kwargs)
    logger.info("✅ OpenAI client initialized")
    return client


def _init_deepseek_client() -> Optional[AsyncOpenAI]:
    """DeepSeek API 兼容 OpenAI 格式"""
    if not settings.DEEPSEEK_ENABLED:
        return None
    if not settings.DEEPSEEK_API_KEY:
        logger.warning("DEEPSEEK_API_KEY not configured")
        return None
    client = AsyncOpenAI(
        api_key=settings.DEEPSEEK_API_KEY,
        base_url=settings.DEEPSEEK_API_BASE,
        timeout=settings.DEEPSEEK_TIMEOUT_SECONDS,
    )
    logger.info("✅ DeepSeek client initialized (base_url: %s)", settings.DEEPSEEK_API_BASE)
    return client


def get_ai_client(provider: AIProvider = AIProvider.OPENAI) -> Optional[AsyncOpenAI]:
    """懒加载 + 全局单例；熔断期间返回 None"""
    if provider in _provider_circuit_breaker:
        recovery_time = _provider_circuit_breaker[provider]
        if datetime.now().timestamp() < recovery_time:
            remaining = int(recovery_time - datetime.now().timestamp())
            logger.warning(f"⚠️ {provider.value} is circuit-broken, recovery in {remaining}s")
            return None
        del _provider_circuit_breaker[provider]
        logger.info(f"✅ {provider.value} circuit breaker recovered")

    if _clients.get(provider):
        return _clients[provider]

    if provider == AIProvider.OPENAI:
        _clients[provider] = _init_openai_client()
    else:
        _clients[provider] = _init_deepseek_client()
    return _clients[provider]


def circuit_break_provider(provider: AIProvider, duration_seconds: int = 300) -> None:
    _provider_circuit_breaker[provider] = datetime.now().timestamp() + duration_seconds
    logger.warning(f"🔴 Circuit breaking {provider.value} for {duration_seconds}s")


def get_model_for_provider(provider: AIProvider) -> str:
    if provider == AIProvider.DEEPSEEK:
        return settings.DEEPSEEK_MODEL
    return settings.OPENAI_MODEL


def _provider_sequence() -> List[AIProvider]:
    configured = settings.AI_PROVIDERS
    if isinstance(configured, str):
        configured = [p.strip() for p in configured.split(",")]

    providers: List[AIProvider] = []
    for name in configured:
        try:
            providers.append(AIProvider(name.lower().strip()))
        except ValueError:
            logger.warning(f"Unknown AI provider in settings: {name}")

    if settings.AI_PREFERRED_PROVIDER:
        try:
            preferred = AIProvider(settings.AI_PREFERRED_PROVIDER.lower().strip())
            if preferred in providers:
                providers.remove(preferred)
                providers.insert(0, preferred)
        except ValueError:
            pass

    return providers or [AIProvider.OPENAI, AIProvider.DEEPSEEK]


def _clean_json_content(content: str) -> str:
    if "```json" in content:
        content = content.split("```json")[1].split("```")[0].strip()
    elif "```" in content:
        parts = content.split("```")
        if len(parts) >= 3:
            content = parts[1].strip()
    if content and not (content.startswith("{") and content.endswith("}")):
        match = re.search(r"(\{.*\})", content, re.DOTALL)
        if match:
            content = match.group(1).strip()
    return content


async def call_ai_with_fallback(
    messages: List[Dict[str, str]],
    temperature: float = 0.7,
    max_tokens: Optional[int] = None,
    response_format: Optional[Dict[str, Any]] = None,
) -> Tuple[Optional[str], Optional[AIProvider]]:
    """
    调用 AI 生成回复（带自动降级）

    Returns:
        (生成的文本, 使用的提供商) 或 (None, None)
    """
    max_tokens = max_tokens or settings.OPENAI_MAX_TOKENS
    last_error = None

    for provider in _provider_sequence():
        client = get_ai_client(provider)
        if not client:
            continue

        model = get_model_for_provider(provider)
        try:
            kwargs = {"model": model, "messages": messages, "max_tokens": max_tokens, "temperature": temperature}
            if response_format:
                kwargs["response_format"] = response_format

            response = await client.chat.completions.create(**kwargs)
            content = response.choices[0].message.content

            # DeepSeek 可能返回 <think> 块
            if content and "</think>" in content:
                content = content.split("</think>")[-1].strip()
            if content and response_format and response_format.get("type") == "json_object":
                content = _clean_json_content(content)

            if not content or not content.strip():
                logger.warning(f"AI Provider ({provider.value}) returned empty content")
                last_error = Exception(f"{provider.value} returned empty content")
                continue

            logger.info(f"AI Provider ({provider.value}) success | model: {model} | length: {len(content)}")
            return content, provider

        except Exception as e:
            error_str = str(e)
            logger.error(f"AI Provider ({provider.value}) error | model: {model} | {error_str}")
            last_error = e

            if "429" in error_str or "insufficient_quota" in error_str:
                circuit_break_provider(provider, duration_seconds=600)
            elif "401" in error_str or "authentication" in error_str.lower():
                circuit_break_provider(provider, duration_seconds=1800)
            elif "timeout" in error_str.lower() and provider == AIProvider.OPENAI:
                circuit_break_provider(provider, duration_seconds=120)

    if last_error:
        logger.error(f"All AI providers failed. Last error: {last_error}")
    return None, None


def get_circuit_breaker_status() -> Dict[str, Any]:
    now = datetime.now().timestamp()
    status = {}
    for provider, recovery_time in _provider_circuit_breaker.items():
        remaining = int(recovery_time - now)
        if remaining > 0:
            status[provider.value] = {"broken": True, "recovery_in_seconds": remaining}
    return status
