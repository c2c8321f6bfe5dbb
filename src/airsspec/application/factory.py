"""
Application Layer - Engine Factory

Wires EngineSettings into concrete objects: sandbox and tools, LLM
provider, reasoning patterns, executor, UOW persistence, artifact catalog,
compliance gate and state machine. Nothing here holds process-wide state;
every dependency is passed down explicitly.
"""

import uuid
from pathlib import Path
from typing import List, Optional

import structlog

from airsspec.application.logging import configure_logging
from airsspec.application.settings import EngineSettings
from airsspec.core.domain.executor import AgentExecutor
from airsspec.core.domain.models import Agent
from airsspec.core.domain.state_machine import UowStateMachine
from airsspec.core.gate import DefaultComplianceGate
from airsspec.core.interfaces.llm import LLMProviderProtocol
from airsspec.core.patterns.base import ReasoningPattern
from airsspec.core.patterns.registry import PatternRegistry, RuleBasedPatternSelector
from airsspec.infrastructure.artifacts.catalog import ArtifactCatalog
from airsspec.infrastructure.llm.litellm_provider import LiteLLMProvider, RetryPolicy
from airsspec.infrastructure.persistence.artifact_store import FileArtifactStore
from airsspec.infrastructure.persistence.file_state import FileStatePersistence
from airsspec.infrastructure.tools.file_tools import ReadFileTool, WriteFileTool
from airsspec.infrastructure.tools.registry import ToolRegistry
from airsspec.infrastructure.tools.sandbox import Sandbox
from airsspec.infrastructure.tools.search_tool import SearchTool


class EngineFactory:
    """
    Factory for engine components.

    Objects that must be shared (sandbox, tool registry, LLM provider,
    persistence, catalog) are created once per factory and reused.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        llm_provider: Optional[LLMProviderProtocol] = None,
        pattern_registry: Optional[PatternRegistry] = None,
    ):
        """
        Args:
            settings: Engine settings (defaults from the environment)
            llm_provider: Override the LiteLLM provider, e.g. in tests
            pattern_registry: Override the built-in ReAct/CoT registry
        """
        self.settings = settings or EngineSettings()
        self.pattern_registry = pattern_registry or PatternRegistry.with_defaults()
        self.selector = RuleBasedPatternSelector()
        self._llm_provider = llm_provider
        self._sandbox: Optional[Sandbox] = None
        self._tool_registry: Optional[ToolRegistry] = None
        self._persistence: Optional[FileStatePersistence] = None
        self._catalog: Optional[ArtifactCatalog] = None
        self.logger = structlog.get_logger().bind(component="engine_factory")

    @classmethod
    def from_profile(cls, profile: str = "dev", config_dir: str = "configs") -> "EngineFactory":
        """Load a YAML profile and apply its logging settings."""
        settings = EngineSettings.load_profile(profile, Path(config_dir))
        configure_logging(settings.log_level, settings.log_json)
        return cls(settings)

    # --- tools -----------------------------------------------------------------

    def create_sandbox(self) -> Sandbox:
        if self._sandbox is None:
            roots = self.settings.sandbox.allowed_roots or [str(self.settings.workspace_path)]
            self._sandbox = Sandbox(roots, deny_patterns=self.settings.sandbox.deny_patterns)
            self.logger.info(
                "sandbox_created",
                roots=[str(r) for r in self._sandbox.allowed_roots],
                deny_patterns=list(self._sandbox.deny_patterns),
            )
        return self._sandbox

    def create_tool_registry(self) -> ToolRegistry:
        if self._tool_registry is None:
            sandbox = self.create_sandbox()
            self._tool_registry = ToolRegistry(
                [
                    ReadFileTool(sandbox),
                    WriteFileTool(sandbox),
                    SearchTool(sandbox, max_results=self.settings.sandbox.search_max_results),
                ]
            )
        return self._tool_registry

    # --- reasoning ---------------------------------------------------------------

    def create_llm_provider(self) -> LLMProviderProtocol:
        if self._llm_provider is None:
            llm = self.settings.llm
            self._llm_provider = LiteLLMProvider(
                model=llm.model,
                retry_policy=RetryPolicy(
                    max_retries=llm.max_llm_retries,
                    backoff_base_ms=llm.backoff_base_ms,
                    backoff_max_ms=llm.backoff_max_ms,
                    retry_on_errors=list(llm.retry_on_errors),
                ),
                timeout=llm.timeout,
            )
        return self._llm_provider

    def create_pattern(
        self, name: Optional[str] = None, tools: Optional[List[str]] = None
    ) -> ReasoningPattern:
        """
        Build a reasoning pattern.

        Without ``name`` the selector chooses: ReAct when ``tools`` is
        non-empty, Chain-of-Thought otherwise.
        """
        if name is None:
            name = self.selector.select("", tools or [])
        return self.pattern_registry.create(
            name, self.create_llm_provider(), self.settings.pattern_config()
        )

    def create_executor(self) -> AgentExecutor:
        return AgentExecutor(
            self.create_tool_registry(),
            max_parse_failures=self.settings.executor.max_parse_failures,
        )

    def create_agent(
        self,
        query: str,
        agent_id: Optional[str] = None,
        pattern: Optional[str] = None,
        allowed_tools: Optional[List[str]] = None,
    ) -> Agent:
        tools = allowed_tools if allowed_tools is not None else self.create_tool_registry().list()
        if pattern is None:
            pattern = self.settings.executor.default_pattern
        return Agent(
            id=agent_id or f"agent-{uuid.uuid4().hex[:8]}",
            query=query,
            pattern=self.create_pattern(pattern, tools),
            allowed_tools=allowed_tools,
        )

    # --- units of work --------------------------------------------------------------

    def create_state_persistence(self) -> FileStatePersistence:
        if self._persistence is None:
            self._persistence = FileStatePersistence(self.settings.work_dir_path)
        return self._persistence

    def create_artifact_catalog(self) -> ArtifactCatalog:
        if self._catalog is None:
            work_dir = self.settings.work_dir_path
            self._catalog = ArtifactCatalog(FileArtifactStore(work_dir), root=work_dir)
        return self._catalog

    def create_compliance_gate(self) -> DefaultComplianceGate:
        return DefaultComplianceGate(self.create_artifact_catalog())

    def create_state_machine(self) -> UowStateMachine:
        return UowStateMachine(
            self.create_state_persistence(),
            self.create_compliance_gate(),
            catalog=self.create_artifact_catalog(),
        )
