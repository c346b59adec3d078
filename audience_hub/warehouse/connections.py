# audience_hub/warehouse/connections.py
"""Registry of warehouse connections keyed by connection id."""

from typing import Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from audience_hub.query.errors import ConfigurationError


class WarehouseConnectionRegistry:
    """Lazily creates and caches one SQLAlchemy engine per connection id."""

    def __init__(self, urls: Optional[Dict[str, str]] = None):
        self._urls: Dict[str, str] = dict(urls or {})
        self._engines: Dict[str, Engine] = {}

    def register(self, connection_id: str, url: Optional[str] = None, engine: Optional[Engine] = None) -> None:
        if url is None and engine is None:
            raise ValueError("Either url or engine is required to register a connection")
        if engine is not None:
            self._engines[connection_id] = engine
        if url is not None:
            self._urls[connection_id] = url

    def has_connection(self, connection_id: str) -> bool:
        return connection_id in self._engines or connection_id in self._urls

    def get_engine(self, connection_id: str) -> Engine:
        if connection_id in self._engines:
            return self._engines[connection_id]
        url = self._urls.get(connection_id)
        if url is None:
            raise ConfigurationError(f"Unknown warehouse connection '{connection_id}'")

        if url.startswith("sqlite"):
            engine = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
        else:
            engine = create_engine(url, pool_pre_ping=True)
        self._engines[connection_id] = engine
        return engine

    def dispose(self) -> None:
        for engine in self._engines.values():
            engine.dispose()
        self._engines.clear()
