import logging
import sys
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from discogram.core.models import AllowListScope, RoutingPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    telegram_bot_token: str = Field(..., description="Required Telegram bot token")
    discord_bot_token: str = Field(..., description="Required Discord bot token")

    # Routing configuration
    routing_policy: RoutingPolicy = Field(
        default=RoutingPolicy.CHANNEL, description="How Discord messages are matched to Telegram chats"
    )
    allowlist_scope: AllowListScope = Field(
        default=AllowListScope.GLOBAL,
        description="Whether allowed channels reach every chat or only the chats that added them",
    )
    discord_channel_ids: str = Field(default="", description="Comma separated channel ids seeding the allow-list")
    broadcast_marker: str = Field(default="@everyone", description="Content marker that always passes the thread gate")
    first_message_lookback: int = Field(default=10, description="Prior messages inspected to detect a thread opener")

    # Storage configuration
    database_path: str = Field(default=".data/discogram.db", description="Path to the subscription database")
    update_id_file_path: str = Field(default=".data/update_id.txt", description="Path to store Telegram update offset")

    # Delivery configuration
    name_cache_ttl_seconds: float = Field(default=300.0, description="Lifetime of cached channel and guild names")
    delivery_queue_size: int = Field(default=1000, description="Relayed events buffered for the delivery worker")
    reply_max_retries: int = Field(default=3, description="Retries for command confirmations")
    poll_timeout: int = Field(default=30, description="Telegram long polling timeout in seconds")

    # HTTP server
    host: str = Field(default="0.0.0.0", description="Bind address of the admin API")
    port: int = Field(default=8000, description="Port of the admin API")

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("telegram_bot_token")
    @classmethod
    def validate_telegram_bot_token(cls, v: str) -> str:
        """Validate that the Telegram bot token is provided and not empty."""
        if not v or v.strip() == "":
            raise ValueError(
                "TELEGRAM_BOT_TOKEN is required. Please set it in your environment variables or .env file."
            )
        return v.strip()

    @field_validator("discord_bot_token")
    @classmethod
    def validate_discord_bot_token(cls, v: str) -> str:
        """Validate that the Discord bot token is provided and not empty."""
        if not v or v.strip() == "":
            raise ValueError(
                "DISCORD_BOT_TOKEN is required. Please set it in your environment variables or .env file."
            )
        return v.strip()

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        v = str(v).upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {', '.join(valid_levels)}")
        return v

    @field_validator("routing_policy", "allowlist_scope", mode="before")
    @classmethod
    def normalize_choice(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("first_message_lookback")
    @classmethod
    def validate_first_message_lookback(cls, v: int) -> int:
        # Discord caps a single history page at 100 messages
        if v < 1 or v > 100:
            raise ValueError("FIRST_MESSAGE_LOOKBACK must be between 1 and 100")
        return v

    @field_validator("delivery_queue_size")
    @classmethod
    def validate_delivery_queue_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("DELIVERY_QUEUE_SIZE must be greater than 0")
        return v

    @field_validator("name_cache_ttl_seconds")
    @classmethod
    def validate_name_cache_ttl_seconds(cls, v: float) -> float:
        if v < 0:
            raise ValueError("NAME_CACHE_TTL_SECONDS must be non-negative")
        return v

    def initial_channel_ids(self) -> List[str]:
        """Channel ids from DISCORD_CHANNEL_IDS, in the order given, without blanks."""
        return [part.strip() for part in self.discord_channel_ids.split(",") if part.strip()]

    def validate_environment(self) -> None:
        """Validate critical environment variables and log configuration status."""
        logger = logging.getLogger(__name__)
        validation_errors = []

        logger.info("Configuration loaded successfully:")
        logger.info(f"  - Log level: {self.log_level}")
        logger.info(f"  - Telegram bot token: {'✓ Configured' if self.telegram_bot_token else '✗ Missing'}")
        logger.info(f"  - Discord bot token: {'✓ Configured' if self.discord_bot_token else '✗ Missing'}")
        logger.info(f"  - Routing policy: {self.routing_policy.value}")
        logger.info(f"  - Database path: {self.database_path}")
        logger.info(f"  - Update ID file path: {self.update_id_file_path}")
        logger.info(f"  - Delivery queue size: {self.delivery_queue_size}")
        logger.info(f"  - Name cache TTL: {self.name_cache_ttl_seconds}s")

        if self.routing_policy == RoutingPolicy.ALLOWLIST:
            logger.info(f"  - Allow-list scope: {self.allowlist_scope.value}")
            logger.info(f"  - Initial allow-list: {len(self.initial_channel_ids())} channel(s)")
        if self.routing_policy == RoutingPolicy.GUILD:
            logger.info(f"  - Broadcast marker: {self.broadcast_marker!r}")
            logger.info(f"  - First message lookback: {self.first_message_lookback}")

        if not self.telegram_bot_token:
            validation_errors.append(
                "TELEGRAM_BOT_TOKEN is required but not provided. "
                "Please set it in your environment variables or .env file."
            )
        if not self.discord_bot_token:
            validation_errors.append(
                "DISCORD_BOT_TOKEN is required but not provided. "
                "Please set it in your environment variables or .env file."
            )
        if self.routing_policy == RoutingPolicy.GUILD and not self.broadcast_marker.strip():
            validation_errors.append("BROADCAST_MARKER must not be empty when ROUTING_POLICY=guild.")

        if validation_errors:
            logger.error("Configuration validation failed:")
            for error in validation_errors:
                logger.error(f"  ✗ {error}")
            logger.error("Please fix the configuration issues above and restart the application.")
            sys.exit(1)

        logger.info("✓ Configuration validation completed successfully")
