from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Type

from carrel_table.config.model import DataSourceDefinition

from .base import BaseDataSource, DataSource
from .http import HttpDataSource
from .memory import InMemoryDataSource

logger = logging.getLogger(__name__)


class DataSourceRegistry:
    """
    Registry of data source classes, keyed by the `kind` used in source definitions.

    Purpose:
    - Lets config files name a backend ("memory", "http", ...) instead of
      importing it, so hosts build sources from sources/*.json alone
    - Stores classes, not instances; each definition gets its own instance

    Enforces:
    - only DataSource subclasses can be registered
    - each kind is registered once
    """

    def __init__(self):
        self._sources: Dict[str, Type[DataSource]] = {}

    def register(self, source_cls: Type[DataSource], kind: Optional[str] = None) -> None:
        """
        Register a DataSource subclass under `kind` (defaults to the class 'id').

        :param source_cls: the DataSource subclass
        :param kind: name used in definitions

        Raises:
            TypeError: if source_cls is not a subclass of DataSource
            ValueError: if the kind is already registered
        """
        if not isinstance(source_cls, type) or not issubclass(source_cls, DataSource):
            raise TypeError(f"Data source '{source_cls!r}' must be a subclass of DataSource")

        kind = kind or source_cls.id
        if not kind:
            raise ValueError(f"Data source {source_cls.__name__} has no id; pass a kind")

        if kind in self._sources:
            raise ValueError(f"Data source kind '{kind}' already registered")

        self._sources[kind] = source_cls

    def get(self, kind: str) -> Type[DataSource]:
        """
        Raises:
            KeyError: if no source is registered under `kind`
        """
        try:
            return self._sources[kind]
        except KeyError:
            raise KeyError(f"Data source kind '{kind}' not found")

    def create(self, definition: DataSourceDefinition, base_dir: Optional[Path] = None) -> DataSource:
        """
        Instantiate the class registered for `definition.kind`.

        BaseDataSource subclasses build themselves from the definition; plain
        DataSource implementations are constructed without arguments.
        """
        cls = self.get(definition.kind)
        if issubclass(cls, BaseDataSource):
            source = cls.from_definition(definition, base_dir=base_dir)
        else:
            source = cls()

        logger.debug(
            "Created data source",
            extra={"kind": definition.kind, "source": definition.id},
        )
        return source

    def kinds(self) -> List[str]:
        return list(self._sources)

    def all_classes(self) -> List[Type[DataSource]]:
        return list(self._sources.values())


def default_registry() -> DataSourceRegistry:
    """Registry with the built-in kinds: 'memory' and 'http'."""
    registry = DataSourceRegistry()
    registry.register(InMemoryDataSource)
    registry.register(HttpDataSource)
    return registry
