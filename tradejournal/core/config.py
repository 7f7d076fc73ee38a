from pathlib import Path
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Locate the nearest .env starting from this file's directory
def find_env_file() -> Path | None:
    current = Path(__file__).resolve()
    for parent in current.parents:
        env_file = parent / ".env"
        if env_file.exists():
            return env_file
    return None


ENV_FILE = find_env_file()
BASE_DIR = ENV_FILE.parent if ENV_FILE else Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    APP_NAME: str = "Trading Journal"

    # 数据库：sqlite（默认，本地开发） / mysql
    DB_TYPE: str = "sqlite"
    DATABASE_URL: str = "sqlite+aiosqlite:///./trading_journal.db"

    # Redis 缓存（默认关闭）
    REDIS_ENABLED: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"
    METRICS_CACHE_TTL_SECONDS: int = 300
    MARKET_CACHE_TTL_SECONDS: int = 60

    # 认证
    AUTH_ENABLED: bool = True
    JWT_SECRET_KEY: str = "change-me-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    # AUTH_ENABLED=false 时所有请求都以该用户身份执行
    DEMO_USER_ID: str = "demo-user-1"
    DEMO_USER_EMAIL: str = "demo@tradejournal.local"

    # LLM / OpenAI 配置（交易分析、聊天助手、报告）
    OPENAI_API_KEY: str | None = None
    OPENAI_API_BASE: str | None = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_MAX_TOKENS: int = 1500
    OPENAI_TIMEOUT_SECONDS: int = 30

    # DeepSeek 兜底
    DEEPSEEK_ENABLED: bool = False
    DEEPSEEK_API_KEY: str | None = None
    DEEPSEEK_API_BASE: str = "https://api.deepseek.com"
    DEEPSEEK_MODEL: str = "deepseek-chat"
    DEEPSEEK_TIMEOUT_SECONDS: int = 60

    AI_PROVIDERS: List[str] | str = ["openai", "deepseek"]
    AI_PREFERRED_PROVIDER: str | None = None

    # 支付（Stripe）
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    PREMIUM_PRICE_USD: float = 99.0
    # Stripe 最低收费 0.50 USD
    STRIPE_MIN_CHARGE_USD: float = 0.50
    ADMIN_REVENUE_PER_PREMIUM_USD: float = 29.99

    # 订阅限额（-1 表示不限）
    FREE_MAX_TRADES: int = -1
    FREE_MAX_ACCOUNTS: int = -1
    PREMIUM_MAX_TRADES: int = -1
    PREMIUM_MAX_ACCOUNTS: int = -1

    # 行情 / 新闻
    TRADERMADE_API_KEY: str | None = None
    TRADERMADE_API_BASE: str = "https://marketdata.tradermade.com/api/v1"
    ALPHA_VANTAGE_API_KEY: str | None = None
    ALPHA_VANTAGE_API_BASE: str = "https://www.alphavantage.co/query"
    MARKET_TIMEOUT_SECONDS: float = 10.0

    # 交易建议
    SUGGESTION_VALID_HOURS: int = 24
    SUGGESTION_MAX_COUNT: int = 5

    # 交易导入 / 游戏化
    DEFAULT_INITIAL_BALANCE: float = 10000.0
    GAMIFICATION_HISTORY_DAYS: int = 30

    CORS_ORIGINS: List[str] | str = ["*"]

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE else ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, str) and not value.startswith("["):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value


settings = Settings()
