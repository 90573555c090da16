"""
Configuration management for AppGraph.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local synthesis
    - Invalid values fail at load time, before any graph is assembled

How to change safely:
    - Add new settings with defaults that keep existing declarations
      byte-identical
    - Document every new variable in the dataclass docstring
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("json", "yaml")
LOG_FORMATS = ("json", "text")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class AssemblyConfig:
    """Graph assembly configuration.

    Attributes:
        strict: Fail declaration calls fast (false defers checks to validation)
        default_memory_mb: Memory budget for units that do not set one
        default_runtime: Runtime for handlers that do not set one
    """

    strict: bool = True
    default_memory_mb: int = 1024
    default_runtime: str = "nodejs16.x"

    @classmethod
    def from_env(cls) -> AssemblyConfig:
        """Load configuration from environment variables."""
        return cls(
            strict=_env_bool("APPGRAPH_STRICT", "true"),
            default_memory_mb=int(os.getenv("APPGRAPH_DEFAULT_MEMORY_MB", "1024")),
            default_runtime=os.getenv("APPGRAPH_DEFAULT_RUNTIME", "nodejs16.x"),
        )


@dataclass(frozen=True)
class OutputConfig:
    """Declaration output configuration.

    Attributes:
        format: Output format (json, yaml)
        indent: JSON indentation
    """

    format: str = "json"
    indent: int = 2

    @classmethod
    def from_env(cls) -> OutputConfig:
        """Load configuration from environment variables."""
        return cls(
            format=os.getenv("APPGRAPH_OUTPUT_FORMAT", "json").lower(),
            indent=int(os.getenv("APPGRAPH_OUTPUT_INDENT", "2")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
        )


@dataclass
class AppGraphConfig:
    """Complete AppGraph configuration.

    Attributes:
        assembly: Graph assembly configuration
        output: Declaration output configuration
        observability: Logging configuration
    """

    assembly: AssemblyConfig = field(default_factory=AssemblyConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> AppGraphConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            assembly=AssemblyConfig.from_env(),
            output=OutputConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.assembly.default_memory_mb <= 0:
            raise ValueError(
                f"APPGRAPH_DEFAULT_MEMORY_MB must be positive, got {self.assembly.default_memory_mb}"
            )
        if not self.assembly.default_runtime:
            raise ValueError("APPGRAPH_DEFAULT_RUNTIME cannot be empty")
        if self.output.format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Invalid APPGRAPH_OUTPUT_FORMAT '{self.output.format}'. "
                f"Must be one of: {', '.join(OUTPUT_FORMATS)}"
            )
        if self.output.indent < 0:
            raise ValueError(f"APPGRAPH_OUTPUT_INDENT must be >= 0, got {self.output.indent}")
        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. "
                f"Must be one of: {', '.join(LOG_FORMATS)}"
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "AppGraph configuration loaded",
            extra={
                "strict": self.assembly.strict,
                "default_memory_mb": self.assembly.default_memory_mb,
                "default_runtime": self.assembly.default_runtime,
                "output_format": self.output.format,
                "log_level": self.observability.log_level,
            },
        )
