"""
Pipeline context.

Everything a phase needs from the outside world is passed explicitly
through a PipelineContext: configuration, the model client, the tool
registry, the content store and the source fetcher. Caches live on these
objects and are reset with clear_caches().
"""

from dataclasses import dataclass
from typing import Optional

from ..agent.loop import MessageClient
from ..agent.tools import ToolRegistry
from ..content.store import ContentStore
from ..integrations.llm.client import LLMClient
from ..integrations.search.linkup_client import LinkupClient, LinkupConfig
from ..integrations.search.scry_client import ScryClient
from ..integrations.search.source_fetcher import SourceFetcher
from ..utils.config import Config
from .artifacts import RunArtifacts


@dataclass
class PipelineContext:
    config: Config
    llm: MessageClient
    tools: ToolRegistry
    store: ContentStore
    fetcher: Optional[SourceFetcher] = None

    @classmethod
    def from_config(cls, config: Config) -> "PipelineContext":
        """Wire up the real clients from configuration."""
        llm = LLMClient(
            default_model=config.DEFAULT_MODEL,
            api_key=config.ANTHROPIC_API_KEY,
            base_url=config.LITELLM_API_URL,
            timeout=config.LLM_TIMEOUT,
            max_retries=config.LLM_MAX_RETRIES,
            retry_delay=config.LLM_RETRY_BASE_DELAY,
            heartbeat_interval=config.API_HEARTBEAT_INTERVAL
        )

        linkup = None
        if config.LINKUP_API_KEY:
            linkup = LinkupClient(LinkupConfig(
                api_key=config.LINKUP_API_KEY,
                endpoint=config.LINKUP_API_URL,
                timeout=config.SIMPLE_TIMEOUT,
                max_results=config.LINKUP_MAX_RESULTS
            ))
        scry = ScryClient(config.SCRY_API_URL, config.SCRY_API_KEY, timeout=config.SIMPLE_TIMEOUT)

        fetcher = SourceFetcher(
            timeout=config.FETCH_TIMEOUT,
            concurrency=config.FETCH_CONCURRENCY,
            delay=config.FETCH_DELAY
        )

        return cls(
            config=config,
            llm=llm,
            tools=ToolRegistry.from_clients(config.PROJECT_ROOT, linkup=linkup, scry=scry),
            store=ContentStore(config),
            fetcher=fetcher
        )

    def artifacts(self, page_id: str) -> RunArtifacts:
        return RunArtifacts(self.config.resolve(self.config.TEMP_DIR), page_id)

    def model_for(self, override: Optional[str]) -> str:
        return override or self.config.DEFAULT_MODEL

    def clear_caches(self):
        self.store.clear_cache()
        if self.fetcher is not None:
            self.fetcher.clear_cache()
