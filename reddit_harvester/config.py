"""Configuration handling for the Reddit harvester."""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

# Built-in defaults for the fast and full community lists. These only seed
# ``Config``; the pipeline always receives its lists through a Config instance.
_FAST_COMMUNITIES = [
    "AskAcademia", "GradSchool", "PhD", "science", "MachineLearning",
    "datascience", "LocalLLaMA", "cscareerquestions", "labrats", "Professors",
    "singularity", "AGI", "artificial", "deeplearning", "compsci",
]

_FULL_COMMUNITIES = [
    "AskAcademia", "GradSchool", "PhD", "science", "AcademicPsychology",
    "labrats", "Professors", "scholarships", "researchstudents", "PostDoc",
    "OpenScience", "MachineLearning", "datascience", "SciencePolicy", "engineering",
    "AskScienceDiscussion", "academia", "ScientificComputing", "artificial", "deeplearning",
    "LanguageTechnology", "computervision", "reinforcementlearning", "learnmachinelearning",
    "MLQuestions", "LocalLLaMA", "cscareerquestions", "compsci", "algorithms",
    "MachineLearningResearch", "robotics", "QuantumComputing", "computerscience",
    "MLPapers", "ControlProblem", "AIethics", "singularity", "AGI", "HCI",
]

# Fixed priority order of the adapter chain.
SOURCE_ORDER = ("oauth", "anonymous", "feed", "archive")


@dataclass
class SourceConfig:
    """Settings for one source adapter."""

    enabled: bool = True
    requests_per_minute: int = 30
    min_remaining_calls: int = 5
    sleep_buffer_sec: float = 2.0
    base_url: Optional[str] = None


def _default_sources() -> Dict[str, SourceConfig]:
    return {
        "oauth": SourceConfig(requests_per_minute=100, base_url="https://oauth.reddit.com"),
        "anonymous": SourceConfig(requests_per_minute=60, base_url="https://www.reddit.com"),
        "feed": SourceConfig(requests_per_minute=60, base_url="https://www.reddit.com"),
        "archive": SourceConfig(requests_per_minute=60, base_url="https://api.pullpush.io"),
    }


@dataclass
class HarvestSettings:
    """Batching, timeout and filtering knobs of the harvest pipeline."""

    batch_size: int = 5
    inter_batch_delay_sec: float = 1.0
    adapter_timeout_sec: float = 10.0
    rate_limit_retry_delay_sec: float = 4.0
    adapter_failure_threshold: int = 5
    max_comment_depth: int = 10
    max_comments_per_post: int = 200
    comment_fetch_min_score: int = 10
    comment_fetch_min_comments: int = 5
    comment_request_delay_sec: float = 0.2
    comment_time_budget_sec: float = 6.0
    comment_limit: int = 50
    archive_comment_posts: int = 5
    min_body_length: int = 10


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""

    enable_prometheus: bool = False
    prometheus_port: int = 8000


@dataclass
class StorageConfig:
    """Where finished harvests are written."""

    csv_path: Optional[str] = "data/harvests.csv"
    database_url: Optional[str] = None


def _apply(target: Any, values: Dict[str, Any]) -> None:
    """Copy known keys from a YAML mapping onto a dataclass instance."""
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key in known:
            setattr(target, key, value)


@dataclass
class Config:
    """Application configuration combining environment variables and YAML config."""

    # Reddit API credentials from environment
    client_id: str = ""
    client_secret: str = ""
    user_agent: str = "research_harvester/0.1"

    log_level: str = "INFO"

    # YAML config values with defaults
    fast_communities: List[str] = field(default_factory=lambda: list(_FAST_COMMUNITIES))
    full_communities: List[str] = field(default_factory=lambda: list(_FULL_COMMUNITIES))
    harvest: HarvestSettings = field(default_factory=HarvestSettings)
    sources: Dict[str, SourceConfig] = field(default_factory=_default_sources)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def default_communities(self, fast_mode: bool) -> List[str]:
        """Community list used when a request does not name any."""
        return list(self.fast_communities if fast_mode else self.full_communities)

    def source(self, name: str) -> SourceConfig:
        return self.sources.get(name) or SourceConfig(enabled=False)

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
        config.log_level = os.getenv("LOGLEVEL", config.log_level)

        if os.path.exists(config_path):
            with open(config_path, "r", encoding="utf-8") as file:
                yaml_config = yaml.safe_load(file) or {}

            for key in ("fast_communities", "full_communities", "log_level", "user_agent"):
                if key in yaml_config:
                    setattr(config, key, yaml_config[key])

            if isinstance(yaml_config.get("harvest"), dict):
                _apply(config.harvest, yaml_config["harvest"])

            if isinstance(yaml_config.get("monitoring"), dict):
                _apply(config.monitoring, yaml_config["monitoring"])

            if isinstance(yaml_config.get("storage"), dict):
                _apply(config.storage, yaml_config["storage"])

            if isinstance(yaml_config.get("sources"), dict):
                for name, values in yaml_config["sources"].items():
                    if name not in SOURCE_ORDER or not isinstance(values, dict):
                        continue
                    _apply(config.sources.setdefault(name, SourceConfig()), values)

        # The database URL is a secret, so the environment wins over YAML.
        database_url = os.getenv("HARVEST_DATABASE_URL")
        if database_url:
            config.storage.database_url = database_url

        return config

    def validate(self) -> List[str]:
        """
        Validate configuration and return a list of validation errors.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        harvest = self.harvest

        if harvest.batch_size <= 0:
            errors.append("harvest.batch_size must be greater than 0")
        if harvest.inter_batch_delay_sec < 0:
            errors.append("harvest.inter_batch_delay_sec must not be negative")
        if harvest.adapter_timeout_sec <= 0:
            errors.append("harvest.adapter_timeout_sec must be greater than 0")
        if harvest.rate_limit_retry_delay_sec < 0:
            errors.append("harvest.rate_limit_retry_delay_sec must not be negative")
        if harvest.adapter_failure_threshold <= 0:
            errors.append("harvest.adapter_failure_threshold must be greater than 0")
        if harvest.comment_time_budget_sec >= harvest.adapter_timeout_sec:
            errors.append("harvest.comment_time_budget_sec must be lower than harvest.adapter_timeout_sec")
        if harvest.max_comment_depth <= 0:
            errors.append("harvest.max_comment_depth must be greater than 0")

        if not self.fast_communities:
            errors.append("No fast_communities specified in configuration")
        if not self.full_communities:
            errors.append("No full_communities specified in configuration")

        enabled = [name for name in SOURCE_ORDER if self.source(name).enabled]
        if not enabled:
            errors.append("At least one source adapter must be enabled")
        if enabled == ["oauth"] and not self.has_credentials:
            errors.append("Only the oauth source is enabled but REDDIT_CLIENT_ID/SECRET are missing")

        for name in enabled:
            if self.source(name).requests_per_minute <= 0:
                errors.append(f"sources.{name}.requests_per_minute must be greater than 0")

        return errors
