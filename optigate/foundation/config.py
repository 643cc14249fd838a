from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, FrozenSet, Mapping

import yaml  # type: ignore[import-untyped]

from optigate.services.datafile.config import DatafileOptions, ServerConfig

logger = logging.getLogger(__name__)

CONFIG_SECTION_NAMES: tuple[str, ...] = ("server", "datafile", "telemetry")
CONFIG_FILE_ENV = "OPTIGATE_CONFIG_FILE"


@dataclass
class TelemetryConfig:
    """Tracing exporters."""

    otel_exporter_endpoint: str | None = None
    enable_fastapi_otel: bool = False


@dataclass
class UnifiedConfig:
    """Configuration aggregating server, datafile and telemetry settings."""

    server: ServerConfig = field(default_factory=ServerConfig)
    datafile: DatafileOptions = field(default_factory=DatafileOptions)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    present_sections: FrozenSet[str] = field(default_factory=frozenset)


def find_config_file(cwd: Path | None = None) -> str | None:
    """Return ``$OPTIGATE_CONFIG_FILE`` or the first config file in ``cwd``."""

    override = os.getenv(CONFIG_FILE_ENV)
    if override:
        return override

    base = Path.cwd() if cwd is None else cwd
    for name in ("optigate.yml", "optigate.yaml"):
        candidate = base / name
        if candidate.is_file():
            return str(candidate)
    return None


def _read_config_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            try:
                data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                logger.error("Failed to parse configuration file %s: %s", path, exc)
                raise ValueError(f"Failed to parse configuration file {path}") from exc
    except (FileNotFoundError, OSError) as exc:
        logger.error("Unable to open configuration file %s: %s", path, exc)
        raise

    if not isinstance(data, dict):
        raise TypeError("Unified config must be a mapping")
    return data


def _extract_sections(
    data: Mapping[str, Any],
) -> tuple[dict[str, dict[str, Any]], FrozenSet[str]]:
    present_sections: FrozenSet[str] = frozenset(
        section
        for section in CONFIG_SECTION_NAMES
        if section in data and isinstance(data.get(section), dict)
    )

    sections: dict[str, dict[str, Any]] = {}
    for section_name in CONFIG_SECTION_NAMES:
        raw_section = data.get(section_name, {})
        if raw_section is None:
            raw_section = {}
        if not isinstance(raw_section, dict):
            raise TypeError(f"{section_name} section must be a mapping")
        sections[section_name] = dict(raw_section)
    return sections, present_sections


def load_config(path: str) -> UnifiedConfig:
    """Parse YAML/JSON and populate :class:`UnifiedConfig`."""
    data = _read_config_mapping(path)
    sections, present_sections = _extract_sections(data)

    return UnifiedConfig(
        server=ServerConfig(**sections["server"]),
        datafile=DatafileOptions.from_mapping(sections["datafile"]),
        telemetry=TelemetryConfig(**sections["telemetry"]),
        present_sections=present_sections,
    )


__all__ = [
    "CONFIG_FILE_ENV",
    "CONFIG_SECTION_NAMES",
    "TelemetryConfig",
    "UnifiedConfig",
    "find_config_file",
    "load_config",
]
