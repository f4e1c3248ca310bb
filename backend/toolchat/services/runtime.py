"""
Process-wide tool runtime: registry, executor, gateway and orchestrator.

Built once by the application lifespan and kept on ``app.state.runtime``.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from toolchat.core.config import Settings, settings as default_settings
from toolchat.services.completion import CompletionGateway
from toolchat.services.tools.executor import ToolExecutor
from toolchat.services.tools.orchestrator import ToolOrchestrator
from toolchat.services.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class ToolRuntime:
    registry: ToolRegistry
    executor: ToolExecutor
    gateway: CompletionGateway
    orchestrator: ToolOrchestrator

    @classmethod
    def create(
        cls,
        config: Optional[Settings] = None,
        gateway: Optional[CompletionGateway] = None,
    ) -> "ToolRuntime":
        config = config or default_settings
        registry = ToolRegistry(config)
        executor = ToolExecutor(registry, default_timeout_ms=int(config.TOOL_EXECUTION_TIMEOUT * 1000))
        gateway = gateway or CompletionGateway(config)
        orchestrator = ToolOrchestrator(gateway, registry, executor, provider=config.LLM_PROVIDER)
        return cls(registry=registry, executor=executor, gateway=gateway, orchestrator=orchestrator)

    async def start(self) -> None:
        await self.registry.initialize()

    async def shutdown(self) -> None:
        logger.info("Shutting down tool runtime...")
        await self.registry.shutdown()
        await self.gateway.aclose()
