"""Configuration management using Pydantic settings."""

from typing import Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class CrawlerConfig(BaseSettings):
    """Configuration for the Bitcoin provenance crawler."""

    # Bitcoin Core endpoint Settings
    bitcoin_rpc_host: str = Field(default="127.0.0.1", description="Bitcoin Core host")
    bitcoin_rpc_port: int = Field(default=8332, description="Bitcoin Core RPC/REST port")
    bitcoin_rpc_user: str = Field(default="bitcoinrpc", description="Bitcoin Core RPC username")
    bitcoin_rpc_password: str = Field(default="", description="Bitcoin Core RPC password")
    bitcoin_rpc_timeout: Optional[float] = Field(
        default=None,
        description="Per-request timeout in seconds (None waits indefinitely)"
    )
    endpoint_mode: Literal["rpc", "rest"] = Field(
        default="rpc",
        description="Fetch blocks over JSON-RPC or the REST interface"
    )

    # Block hash index (rest mode)
    hash_index_file: str = Field(default="data/block_hashes.tsv", description="Height to hash cache file")
    hash_request_batch: int = Field(default=1000, description="getblockhash calls per batched RPC request")

    # Crawl Settings
    checkpoint_file: str = Field(default="data/crawler.progress", description="Last ingested height file")
    retry_pause_seconds: float = Field(default=10.0, description="Pause between fetch attempts")
    retry_budget_seconds: float = Field(default=1800.0, description="Total retry time for one height")
    max_backlog: int = Field(default=100000, description="Sink backlog above which fetching pauses")
    backlog_poll_interval: float = Field(default=1.0, description="Seconds between sink backlog polls")
    progress_log_interval: float = Field(default=60.0, description="Seconds between rate log lines")
    relink_on_resume: bool = Field(
        default=True,
        description="Re-fetch the checkpointed block on resume to recover the chain link"
    )

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json|text)")
    log_file: Optional[str] = Field(default="logs/btc_provenance.log", description="Log file path")
    log_max_size_mb: int = Field(default=100, description="Max log file size in MB")
    log_backup_count: int = Field(default=5, description="Number of log backups")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def rpc_url(self) -> str:
        """Generate Bitcoin Core JSON-RPC URL."""
        return f"http://{self.bitcoin_rpc_host}:{self.bitcoin_rpc_port}"

    @property
    def rest_url(self) -> str:
        """Generate Bitcoin Core REST base URL."""
        return f"{self.rpc_url}/rest"
