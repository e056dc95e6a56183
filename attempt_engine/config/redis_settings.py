"""
Redis connection settings for the attempt engine cache.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Redis connection and key settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Connection
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    # Pool
    redis_max_connections: int = 10
    redis_retry_on_timeout: bool = True
    redis_socket_timeout: float = 2.0

    # Key prefixes
    cache_prefix_attempts: str = "attempts"


redis_settings = RedisSettings()


def get_redis_connection_params() -> dict:
    """
    Connection keyword arguments for ``redis.asyncio.Redis``.

    Returns:
        Dict of connection parameters
    """
    params = {
        "host": redis_settings.redis_host,
        "port": redis_settings.redis_port,
        "db": redis_settings.redis_db,
        "max_connections": redis_settings.redis_max_connections,
        "retry_on_timeout": redis_settings.redis_retry_on_timeout,
        "socket_timeout": redis_settings.redis_socket_timeout,
        "socket_connect_timeout": redis_settings.redis_socket_timeout,
    }

    if redis_settings.redis_password:
        params["password"] = redis_settings.redis_password

    return params
