"""
应用配置
从环境变量读取配置（支持 .env 文件）
"""
from decimal import Decimal
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "HotelRental"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./rental.db"
    SQLITE_BUSY_TIMEOUT: float = 5.0  # 秒，等待写锁的上限

    # 退房结算配置
    CHECKOUT_TIMEOUT_SECONDS: Optional[float] = None  # None 表示不限时
    LOYALTY_POINT_UNIT: Decimal = Decimal("10")       # 每消费 10 元积 1 分

    # 发票配置
    INVOICE_TAX_RATE: Decimal = Decimal("0")
    INVOICE_DUE_DAYS: int = 30
    INVOICE_CREATED_BY: str = "system"

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
