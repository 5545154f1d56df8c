"""Configuration handling for Creator Scout."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

import yaml
from dotenv import load_dotenv

# Strategy identifiers in default fallback order
DEFAULT_STRATEGY_ORDER = ["reddit_api", "public_json", "pushshift", "search_proxy", "html_scrape"]

DEFAULT_SUBREDDITS = [
    "MachineLearning",
    "datascience",
    "artificial",
    "LocalLLaMA",
    "deeplearning",
    "learnmachinelearning",
    "ChatGPT",
    "LLMOps",
]


@dataclass
class RateLimitConfig:
    """Rate limiting configuration for a single upstream."""

    min_interval_sec: float = 1.0
    max_requests_per_minute: int = 60
    min_remaining_calls: int = 5
    sleep_buffer_sec: int = 2


@dataclass
class RetryConfig:
    """Retry configuration for upstream HTTP calls."""

    max_retries: int = 3
    retry_delay_sec: float = 2.0


@dataclass
class QueueConfig:
    """Scraping queue configuration."""

    min_interval_sec: float = 2.0
    cache_ttl_sec: int = 900  # 15 minutes


@dataclass
class CreatorConfig:
    """Creator ranking and classification configuration."""

    ranking_weight: int = 5
    top_n: int = 15
    classify_top_n: int = 5
    classify_sample_posts: int = 3
    relevance_sample_posts: int = 10


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""

    enable_prometheus: bool = False
    prometheus_port: int = 8000


@dataclass
class Config:
    """Application configuration combining environment variables and YAML config."""

    # Credentials from environment
    client_id: str = ""
    client_secret: str = ""
    user_agent: str = "creator_scout/0.1"
    serpapi_key: str = ""
    database_url: str = "sqlite:///data/creators.db"

    # YAML config values with defaults
    subreddits: List[str] = field(default_factory=lambda: list(DEFAULT_SUBREDDITS))
    strategy_order: List[str] = field(default_factory=lambda: list(DEFAULT_STRATEGY_ORDER))
    sufficient_threshold: int = 5
    strategy_timeout_sec: float = 120.0
    batch_delay_sec: float = 2.0
    failure_threshold: int = 5
    output_dir: str = "output"
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    search_rate_limit: RateLimitConfig = field(
        default_factory=lambda: RateLimitConfig(min_interval_sec=0.8, max_requests_per_minute=30)
    )
    retry: RetryConfig = field(default_factory=RetryConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    creators: CreatorConfig = field(default_factory=CreatorConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_files(cls, config_path: str, env_path: Optional[str] = None) -> "Config":
        """
        Load configuration from YAML file and environment variables.

        Args:
            config_path: Path to YAML configuration file
            env_path: Optional path to .env file (defaults to .env in current directory)

        Returns:
            Config instance with merged configuration
        """
        if env_path:
            load_dotenv(env_path)
        else:
            load_dotenv()

        config = cls()
        config.client_id = os.getenv("REDDIT_CLIENT_ID", "")
        config.client_secret = os.getenv("REDDIT_CLIENT_SECRET", "")
        config.user_agent = os.getenv("REDDIT_USER_AGENT", config.user_agent)
        config.serpapi_key = os.getenv("SERPAPI_KEY", "")
        config.database_url = os.getenv("CREATOR_SCOUT_DB_URL", config.database_url)

        if os.path.exists(config_path):
            with open(config_path, "r", encoding="utf-8") as file:
                yaml_config = yaml.safe_load(file)

            if yaml_config:
                config._merge(yaml_config)

        return config

    def _merge(self, yaml_config: dict) -> None:
        """Overlay values from a parsed YAML mapping onto this config."""
        nested = ("rate_limit", "search_rate_limit", "retry", "queue", "creators", "monitoring")

        for key, value in yaml_config.items():
            if key in nested:
                if not isinstance(value, dict):
                    continue
                section = getattr(self, key)
                for sub_key, sub_value in value.items():
                    if hasattr(section, sub_key):
                        setattr(section, sub_key, sub_value)
            elif hasattr(self, key):
                setattr(self, key, value)

    def validate(self) -> List[str]:
        """
        Validate configuration and return a list of validation errors.

        Missing credentials are not reported here: strategies that need them
        fail fast at call time and the fallback chain moves on.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.strategy_order:
            errors.append("strategy_order must name at least one strategy")
        unknown = [name for name in self.strategy_order if name not in DEFAULT_STRATEGY_ORDER]
        if unknown:
            errors.append(f"Unknown strategies in strategy_order: {', '.join(unknown)}")

        if self.sufficient_threshold < 0:
            errors.append("sufficient_threshold must be 0 or greater")
        if self.strategy_timeout_sec <= 0:
            errors.append("strategy_timeout_sec must be greater than 0")
        if self.batch_delay_sec < 0:
            errors.append("batch_delay_sec must be 0 or greater")
        if self.failure_threshold <= 0:
            errors.append("failure_threshold must be greater than 0")

        for name in ("rate_limit", "search_rate_limit"):
            section = getattr(self, name)
            if section.max_requests_per_minute <= 0:
                errors.append(f"{name}.max_requests_per_minute must be greater than 0")
            if section.min_interval_sec < 0:
                errors.append(f"{name}.min_interval_sec must be 0 or greater")

        if self.retry.max_retries < 1:
            errors.append("retry.max_retries must be at least 1")
        if self.queue.cache_ttl_sec <= 0:
            errors.append("queue.cache_ttl_sec must be greater than 0")
        if self.creators.top_n <= 0:
            errors.append("creators.top_n must be greater than 0")

        return errors
