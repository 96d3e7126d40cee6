"""
IntelConfig - Configuration Management

Sensible defaults with full override capability.

Example:
    >>> # Use defaults (reads from environment)
    >>> config = IntelConfig()

    >>> # Explicit configuration
    >>> config = IntelConfig(
    ...     llm_model="gpt-4.1-mini",
    ...     vendor_catalog_storage_id="vs_123",
    ... )

    >>> # From config file
    >>> config = IntelConfig.from_file("./customer_intel.toml")

Environment Variables:
    CUSTOMER_INTEL_LLM_MODEL - Default model for stage generation
    CUSTOMER_INTEL_LLM_MODEL_STRATEGY - Model for IT strategy generation
    CUSTOMER_INTEL_LLM_MODEL_ASSESSMENT - Model for quantitative assessments
    CUSTOMER_INTEL_EMBEDDING_MODEL - Embedding model name
    CUSTOMER_INTEL_MAX_RECEIVE_COUNT - Deliveries before a message is dead-lettered
    CUSTOMER_INTEL_VENDOR_CATALOG_STORAGE_ID - Storage area holding the vendor catalog
    CUSTOMER_INTEL_BATCH_POLL_INTERVAL_SECONDS - Delay between batch status checks
    CUSTOMER_INTEL_BATCH_POLL_MAX_ATTEMPTS - Status checks before a batch times out
    CUSTOMER_INTEL_STORE_PATH - Directory of the Parquet entity store
    CUSTOMER_INTEL_STORE_BACKEND - "parquet" or "memory"
    OPENAI_API_KEY - OpenAI API key (standard name)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, cast

try:
    import tomllib

    def _load_toml(path: Path) -> dict[str, Any]:
        with open(path, "rb") as f:
            return cast(dict[str, Any], tomllib.load(f))

except ImportError:
    import tomli

    def _load_toml(path: Path) -> dict[str, Any]:
        with open(path, "rb") as f:
            return cast(dict[str, Any], tomli.load(f))


_STORE_BACKENDS = ("parquet", "memory")


class IntelConfig:
    """Configuration for the customer-intel pipeline."""

    # === LLM Configuration ===

    llm_model: str = "gpt-4o-mini"
    """Default model for master data, competition, news and analysis stages"""

    llm_model_assessment: str = "gpt-5-mini"
    """Model for quantitative company assessments"""

    llm_model_strategy: str = "gpt-4.1"
    """Model for IT strategy generation"""

    llm_model_briefing: str = "gpt-4.1-mini"
    """Model for service matching and meeting preparation"""

    # === Embedding Configuration ===

    embedding_model: str = "text-embedding-3-small"
    """Embedding model name"""

    embedding_dimensions: int = 1536
    """Embedding vector dimensions"""

    # === API Keys ===

    openai_api_key: str | None = None

    # === Pipeline Configuration ===

    max_receive_count: int = 3
    """Deliveries of one message before it is moved to the dead-letter list"""

    vendor_catalog_storage_id: str | None = None
    """Storage area with the vendor service catalog (service matching is skipped when unset)"""

    max_analysis_chars: int = 5000
    """Per-company context cap for competition analyses, in characters"""

    max_prior_context_chars: int = 1500
    """Context cap for prior competition analyses, in characters"""

    max_evidence: int = 12
    """Maximum evidence items handed to IT strategy generation"""

    evidence_chars: int = 800
    """Maximum characters per evidence item"""

    # === Ingestion Configuration ===

    chunk_max_words: int = 120
    """Words per chunk"""

    chunk_overlap_words: int = 25
    """Words shared between consecutive chunks"""

    batch_poll_interval_seconds: float = 10.0
    """Fixed delay between batch status checks"""

    batch_poll_max_attempts: int = 30
    """Status checks before a pending batch is declared timed out"""

    fetch_timeout_seconds: float = 8.0
    """Timeout for document availability checks and downloads"""

    news_max_items: int = 12
    """Maximum news items kept per company"""

    # === Storage Configuration ===

    store_path: str = "./intel_store"
    """Directory of the Parquet entity store"""

    store_backend: str = "parquet"
    """Entity store backend: "parquet" or "memory" """

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize configuration.

        Args:
            **kwargs: Override any configuration option
        """
        self._load_from_env()

        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

        if self.store_backend not in _STORE_BACKENDS:
            raise ValueError(
                f"store_backend must be one of {_STORE_BACKENDS}, got {self.store_backend!r}"
            )

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        self.openai_api_key = os.getenv("OPENAI_API_KEY")

        if model := os.getenv("CUSTOMER_INTEL_LLM_MODEL"):
            self.llm_model = model
        if model := os.getenv("CUSTOMER_INTEL_LLM_MODEL_STRATEGY"):
            self.llm_model_strategy = model
        if model := os.getenv("CUSTOMER_INTEL_LLM_MODEL_ASSESSMENT"):
            self.llm_model_assessment = model
        if model := os.getenv("CUSTOMER_INTEL_EMBEDDING_MODEL"):
            self.embedding_model = model
        if count := os.getenv("CUSTOMER_INTEL_MAX_RECEIVE_COUNT"):
            self.max_receive_count = int(count)
        if storage_id := os.getenv("CUSTOMER_INTEL_VENDOR_CATALOG_STORAGE_ID"):
            self.vendor_catalog_storage_id = storage_id
        if interval := os.getenv("CUSTOMER_INTEL_BATCH_POLL_INTERVAL_SECONDS"):
            self.batch_poll_interval_seconds = float(interval)
        if attempts := os.getenv("CUSTOMER_INTEL_BATCH_POLL_MAX_ATTEMPTS"):
            self.batch_poll_max_attempts = int(attempts)
        if path := os.getenv("CUSTOMER_INTEL_STORE_PATH"):
            self.store_path = path
        if backend := os.getenv("CUSTOMER_INTEL_STORE_BACKEND"):
            self.store_backend = backend

    @classmethod
    def from_file(cls, path: str | Path) -> "IntelConfig":
        """
        Load configuration from TOML file.

        Sections are flattened into config keys: ``[llm] model`` becomes
        ``llm_model``, ``[embedding] dimensions`` becomes
        ``embedding_dimensions``. The ``[pipeline]``, ``[ingestion]`` and
        ``[storage]`` sections use their keys unchanged.

        Example TOML:
            [llm]
            model = "gpt-4o-mini"
            model_strategy = "gpt-4.1"

            [pipeline]
            max_receive_count = 5
            vendor_catalog_storage_id = "vs_abc"

            [storage]
            store_path = "./intel_store"

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the file contains an unknown option
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        data = _load_toml(path)

        flat_config: dict[str, Any] = {}
        section_mapping = {
            "llm": "llm_",
            "embedding": "embedding_",
            "pipeline": "",
            "ingestion": "",
            "storage": "",
        }

        for section, prefix in section_mapping.items():
            if section in data:
                for key, value in data[section].items():
                    flat_config[f"{prefix}{key}"] = value

        for key, value in data.items():
            if key not in section_mapping and not isinstance(value, dict):
                flat_config[key] = value

        return cls(**flat_config)

    @classmethod
    def from_env(cls) -> "IntelConfig":
        """Load configuration from environment variables only."""
        return cls()

    def to_file(self, path: str | Path) -> None:
        """
        Save configuration to TOML file.

        API keys are never written; unset optional values are omitted.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        sections: dict[str, dict[str, str | int | float | bool | None]] = {
            "llm": {
                "model": self.llm_model,
                "model_assessment": self.llm_model_assessment,
                "model_strategy": self.llm_model_strategy,
                "model_briefing": self.llm_model_briefing,
            },
            "embedding": {
                "model": self.embedding_model,
                "dimensions": self.embedding_dimensions,
            },
            "pipeline": {
                "max_receive_count": self.max_receive_count,
                "vendor_catalog_storage_id": self.vendor_catalog_storage_id,
                "max_analysis_chars": self.max_analysis_chars,
                "max_prior_context_chars": self.max_prior_context_chars,
                "max_evidence": self.max_evidence,
                "evidence_chars": self.evidence_chars,
            },
            "ingestion": {
                "chunk_max_words": self.chunk_max_words,
                "chunk_overlap_words": self.chunk_overlap_words,
                "batch_poll_interval_seconds": self.batch_poll_interval_seconds,
                "batch_poll_max_attempts": self.batch_poll_max_attempts,
                "fetch_timeout_seconds": self.fetch_timeout_seconds,
                "news_max_items": self.news_max_items,
            },
            "storage": {
                "store_path": self.store_path,
                "store_backend": self.store_backend,
            },
        }

        lines = ["# customer-intel configuration", ""]

        for section_name, section_values in sections.items():
            lines.append(f"[{section_name}]")
            for key, value in section_values.items():
                if isinstance(value, str):
                    lines.append(f'{key} = "{value}"')
                elif isinstance(value, bool):
                    lines.append(f"{key} = {str(value).lower()}")
                elif isinstance(value, (int, float)):
                    lines.append(f"{key} = {value}")
            lines.append("")

        lines.extend([
            "# OPENAI_API_KEY is read from the environment (or a .env file).",
            "",
        ])

        path.write_text("\n".join(lines))

    def with_overrides(self, **kwargs: Any) -> "IntelConfig":
        """Return new config with specified overrides."""
        new_config = IntelConfig.__new__(IntelConfig)
        for key in dir(self):
            if not key.startswith("_") and not callable(getattr(self, key)):
                setattr(new_config, key, getattr(self, key))
        for key, value in kwargs.items():
            if not hasattr(new_config, key):
                raise ValueError(f"Unknown configuration option: {key}")
            setattr(new_config, key, value)
        return new_config
