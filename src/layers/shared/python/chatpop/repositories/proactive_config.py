"""Proactive configuration repository."""

from chatpop.models.trigger import ProactiveConfig
from chatpop.repositories.base import BaseRepository


class ProactiveConfigRepository(BaseRepository[ProactiveConfig]):
    """Repository for per-agent ProactiveConfig records."""

    def __init__(self, table_name: str | None = None):
        """Initialize proactive config repository."""
        super().__init__(ProactiveConfig, table_name)

    def get_for_agent(self, agent_id: str) -> ProactiveConfig | None:
        """Get an agent's stored configuration."""
        return self.get(pk=f"AGENT#{agent_id}", sk="PROACTIVE_CONFIG")

    def get_or_default(self, agent_id: str) -> ProactiveConfig:
        """Get an agent's configuration, or the disabled default."""
        return self.get_for_agent(agent_id) or ProactiveConfig(agent_id=agent_id)

    def save(self, config: ProactiveConfig) -> ProactiveConfig:
        """Create or replace an agent's configuration."""
        return self.put(config)
