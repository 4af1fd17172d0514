from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from carrel_table.config.model import DataSourceDefinition, TableConfig
from carrel_table.core.exceptions import ConfigError
from carrel_table.datasources.base import DataSource
from carrel_table.datasources.registry import DataSourceRegistry, default_registry

logger = logging.getLogger(__name__)

DATA_ROOT_ENV = "CARREL_TABLE_DATA_ROOT"


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        with path.open() as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return raw


def _resolve_data_root(root: Path, raw_value: Optional[str]) -> Optional[Path]:
    # The environment wins over table.json
    env_value = os.environ.get(DATA_ROOT_ENV)
    if env_value:
        return Path(env_value).expanduser().resolve()

    if raw_value is None:
        return None

    data_root = Path(raw_value)
    if data_root.is_absolute():
        return data_root
    return (root / data_root).resolve()


def load_table_config(root: Path) -> TableConfig:
    """
    Load configuration from a directory using the multi-file layout.

    Expected structure:

        root/
            table.json
            sources/
                people.json
                orders.json
                ...

    table.json holds the table-wide defaults:

    - title: defaults to 'Data Table'
    - default_page_size: defaults to 25
    - default_selection_mode: defaults to 'multi'
    - default_view_mode: defaults to 'table'
    - data_root: base directory for `options.data_file` paths; relative values
                 resolve against `root`, and CARREL_TABLE_DATA_ROOT overrides it

    Each file in 'sources/' is parsed into a DataSourceDefinition.

    :param root: Directory containing 'table.json' and optionally 'sources/'.
    :return: A TableConfig instance.
    :raises FileNotFoundError: if table.json does not exist.
    :raises ConfigError: if a file is not a valid JSON object.
    """
    root = Path(root)
    logger.info(
        "Loading table config",
        extra={"config_root": str(root)},
    )

    table_path = root / "table.json"
    if not table_path.is_file():
        raise FileNotFoundError(f"File not found at {table_path}")

    raw_table = _read_json(table_path)

    sources_dir = root / "sources"
    sources: List[DataSourceDefinition] = []

    if sources_dir.is_dir():
        for idx, source_file in enumerate(sorted(sources_dir.glob("*.json"))):
            sources.append(
                DataSourceDefinition.from_raw(_read_json(source_file), source_path=source_file, index=idx)
            )

    return TableConfig(
        title=raw_table.get("title", "Data Table"),
        default_page_size=int(raw_table.get("default_page_size", 25)),
        default_selection_mode=raw_table.get("default_selection_mode", "multi"),
        default_view_mode=raw_table.get("default_view_mode", "table"),
        sources=sources,
        data_root=_resolve_data_root(root, raw_table.get("data_root")),
    )


def load_data_sources(
    root: Path,
    registry: Optional[DataSourceRegistry] = None,
) -> Tuple[TableConfig, List[DataSource]]:
    """
    Load the table configuration and instantiate every configured data source.

    1. Loads the TableConfig from 'root'.
    2. Builds each definition through the registry (built-in kinds by default).
    3. Skips any source whose definition is invalid, logging the error.
    4. Returns only successfully built sources.

    :param root: Path to config directory.
    :param registry: kinds available to definitions.
    :return: A tuple of (TableConfig, List[DataSource]).
    :raises ConfigError: if no valid source could be built.
    """
    root = Path(root)
    table_config = load_table_config(root)
    registry = registry or default_registry()
    base_dir = table_config.data_root or root

    sources: List[DataSource] = []
    failed = 0

    for definition in table_config.sources:
        try:
            source = registry.create(definition, base_dir=base_dir)
        except (ConfigError, KeyError, ValueError) as e:
            failed += 1
            logger.error(
                "Skipping data source due to config error",
                extra={
                    "source": definition.id,
                    "kind": definition.kind,
                    "path": str(definition.source_path),
                    "error": str(e),
                },
            )
            continue
        except Exception:
            failed += 1
            logger.exception(
                "Unexpected error while building data source; skipping",
                extra={
                    "source": definition.id,
                    "path": str(definition.source_path),
                },
            )
            continue

        sources.append(source)

    logger.info(
        "Data sources loaded from config root",
        extra={
            "config_root": str(root),
            "n_sources": len(sources),
            "n_failed": failed,
            "source_ids": [s.id for s in sources],
        },
    )

    if not sources:
        raise ConfigError(f"No valid data sources could be loaded from config root: {root}")

    return table_config, sources
