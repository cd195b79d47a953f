"""Application configuration using Pydantic BaseSettings."""

import logging

import structlog
from pydantic import Field, model_validator
from eth_account import Account
from pydantic_settings import BaseSettings, SettingsConfigDict
from web3 import Web3


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database Configuration
    database_url: str = Field(alias="DATABASE_URL")
    db_pool_size: int = Field(default=20, alias="DB_POOL_SIZE")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Configuration
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Blockchain adapter (mint authority wallet + StoryNFT contract)
    mint_rpc_url: str = Field(default="", alias="MINT_RPC_URL")
    mint_authority_private_key: str = Field(default="", alias="MINT_AUTHORITY_PRIVATE_KEY")
    story_nft_contract_address: str = Field(default="", alias="STORY_NFT_CONTRACT_ADDRESS")
    mint_gas_buffer: float = Field(default=1.2, alias="MINT_GAS_BUFFER")

    # Mint worker / outbox
    mint_worker_enabled: bool = Field(default=True, alias="MINT_WORKER_ENABLED")
    poll_interval_seconds: float = Field(default=2.0, alias="POLL_INTERVAL_SECONDS")
    outbox_max_attempts: int = Field(default=20, ge=1, alias="OUTBOX_MAX_ATTEMPTS")
    outbox_stale_after_seconds: int = Field(default=600, ge=1, alias="OUTBOX_STALE_AFTER_SECONDS")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate blockchain configuration on startup.

        The mint worker cannot do anything useful without an RPC endpoint, a
        signing key and a contract address, so missing values fail fast here
        instead of surfacing as retried outbox failures later.

        Validation is skipped in test environments.
        """
        if self.app_env in ("test", "testing"):
            return self

        missing = []

        if not self.mint_rpc_url:
            missing.append("MINT_RPC_URL: JSON-RPC endpoint of the target chain")

        if not self.mint_authority_private_key:
            missing.append("MINT_AUTHORITY_PRIVATE_KEY: Private key of the mint authority wallet")
        elif not _is_private_key(self.mint_authority_private_key):
            missing.append("MINT_AUTHORITY_PRIVATE_KEY: not a valid private key")

        if not self.story_nft_contract_address:
            missing.append("STORY_NFT_CONTRACT_ADDRESS: Deploy contract or use existing address")
        elif not Web3.is_address(self.story_nft_contract_address):
            missing.append(
                f"STORY_NFT_CONTRACT_ADDRESS: '{self.story_nft_contract_address}' "
                "is not a valid address"
            )

        if missing:
            error_msg = "CRITICAL: Missing or invalid environment variables:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nThe application cannot start without these variables."
            error_msg += "\nPlease update your .env file and restart."
            raise ValueError(error_msg)

        return self


def _is_private_key(value: str) -> bool:
    try:
        Account.from_key(value)
    except Exception:
        return False
    return True

def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if settings.app_env == "production":
        renderer_processors = [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer_processors = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            *renderer_processors,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
