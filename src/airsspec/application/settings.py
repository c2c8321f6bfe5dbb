"""
Engine configuration.

Values come from (highest priority first): constructor arguments, YAML
profile, ``AIRSSPEC_*`` environment variables, defaults. Nested sections use
``__`` in environment variables, e.g. ``AIRSSPEC_LLM__MODEL=gpt-4o-mini``.
"""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from airsspec.core.domain.models import Budget
from airsspec.core.domain.reasoning import PatternConfig
from airsspec.infrastructure.tools.sandbox import DEFAULT_DENY_PATTERNS


class LLMSettings(BaseModel):
    model: str = Field(default="gpt-4o-mini", description="Default LiteLLM model name")
    timeout: float = Field(default=60, gt=0, description="Per-request timeout in seconds")
    max_llm_retries: int = Field(default=3, ge=0)
    backoff_base_ms: int = Field(default=500, ge=0)
    backoff_max_ms: int = Field(default=10_000, ge=0)
    retry_on_errors: List[str] = Field(default_factory=list)
    temperature: Optional[float] = None
    max_completion_tokens: Optional[int] = None


class ExecutorSettings(BaseModel):
    default_pattern: str = Field(default="react")
    max_iterations: int = Field(default=20, ge=1)
    max_tokens: int = Field(default=100_000, ge=1)
    timeout_secs: float = Field(default=300, gt=0, description="Session wall clock")
    parallel_actions: bool = True
    action_timeout_secs: float = Field(default=30, gt=0)
    max_parse_failures: int = Field(default=2, ge=1)
    pattern_settings: Dict[str, str] = Field(default_factory=dict)


class SandboxSettings(BaseModel):
    # Empty means the workspace root only
    allowed_roots: List[str] = Field(default_factory=list)
    deny_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_DENY_PATTERNS))
    search_max_results: int = Field(default=100, ge=1)


class PersistenceSettings(BaseModel):
    # Relative to the workspace root
    work_dir: str = ".airsspec"


class EngineSettings(BaseSettings):
    """Engine settings with environment variable support."""

    workspace_root: str = Field(default=".", description="Root directory tools operate in")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False, description="Render logs as JSON lines")

    llm: LLMSettings = Field(default_factory=LLMSettings)
    executor: ExecutorSettings = Field(default_factory=ExecutorSettings)
    sandbox: SandboxSettings = Field(default_factory=SandboxSettings)
    persistence: PersistenceSettings = Field(default_factory=PersistenceSettings)

    model_config = SettingsConfigDict(
        env_prefix="AIRSSPEC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    @classmethod
    def load_from_file(cls, config_path: Path) -> "EngineSettings":
        """Load settings from a YAML file. A missing file yields defaults."""
        if not config_path.exists():
            return cls()

        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def load_profile(cls, profile: str, config_dir: Path = Path("configs")) -> "EngineSettings":
        """
        Load ``<config_dir>/<profile>.yaml``.

        Raises:
            FileNotFoundError: If the profile does not exist
        """
        profile_path = config_dir / f"{profile}.yaml"
        if not profile_path.exists():
            raise FileNotFoundError(f"Profile not found: {profile_path}")
        return cls.load_from_file(profile_path)

    @property
    def workspace_path(self) -> Path:
        return Path(self.workspace_root).expanduser().resolve()

    @property
    def work_dir_path(self) -> Path:
        work_dir = Path(self.persistence.work_dir).expanduser()
        return work_dir if work_dir.is_absolute() else self.workspace_path / work_dir

    def budget(self) -> Budget:
        return Budget(
            max_tokens=self.executor.max_tokens,
            max_iterations=self.executor.max_iterations,
            timeout_secs=self.executor.timeout_secs,
        )

    def pattern_config(self) -> PatternConfig:
        settings = dict(self.executor.pattern_settings)
        if self.llm.temperature is not None:
            settings.setdefault("temperature", str(self.llm.temperature))
        if self.llm.max_completion_tokens is not None:
            settings.setdefault("max_completion_tokens", str(self.llm.max_completion_tokens))
        return PatternConfig(
            max_iterations=self.executor.max_iterations,
            max_tokens=self.executor.max_tokens,
            parallel_actions=self.executor.parallel_actions,
            action_timeout_secs=self.executor.action_timeout_secs,
            settings=settings,
        )
