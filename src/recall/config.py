"""Recall configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (RECALL_EMBEDDING_MODEL, RECALL_LLM_MODEL,
     RECALL_INDEX_INTERVAL_MS)
  3. Per-project recall.yaml  (next to .recall.db)
  4. Global ~/.recall/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from recall.db.vectors import model_to_slug

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".recall"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "recall.yaml"
DEFAULT_DB_NAME: str = ".recall.db"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_tokens, rrf_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "llm", "chunker", "indexer", "strategies", "search"]
)

STRATEGY_TYPES: frozenset[str] = frozenset(["direct", "keyword", "summary"])
FUSION_METHODS: frozenset[str] = frozenset(["rrf", "weighted_score"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (recall.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    batch_size: int = 50


@dataclass
class LLMCfg:
    """Model used for keyword/summary enrichment (recall.yaml: llm:)."""

    model: str = "openai/gpt-4o-mini"
    max_tokens: int = 512


@dataclass
class ChunkerCfg:
    """Character-based chunk size and overlap (recall.yaml: chunker:)."""

    chunk_size: int = 800
    overlap: int = 100


@dataclass
class IndexerCfg:
    """Background indexer behaviour (recall.yaml: indexer:)."""

    interval_ms: int = 60_000
    max_messages_per_run: int = 500
    indexable_roles: list[str] = field(default_factory=lambda: ["user", "assistant"])
    min_content_length: int = 10


@dataclass
class StrategyCfg:
    """One enabled retrieval strategy (recall.yaml: strategies[])."""

    type: str = "direct"
    weight: float = 1.0
    enabled: bool = True


@dataclass
class SearchCfg:
    """Search routing and fusion (recall.yaml: search:)."""

    default_limit: int = 20
    max_limit: int = 100
    overfetch_multiplier: int = 3
    fusion_method: str = "rrf"
    rrf_k: int = 60
    fts_weight: float = 1.0
    semantic_weight: float = 1.0
    snippet_length: int = 200


@dataclass
class RecallConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    llm: LLMCfg = field(default_factory=LLMCfg)
    chunker: ChunkerCfg = field(default_factory=ChunkerCfg)
    indexer: IndexerCfg = field(default_factory=IndexerCfg)
    strategies: list[StrategyCfg] = field(default_factory=lambda: [StrategyCfg()])
    search: SearchCfg = field(default_factory=SearchCfg)

    @property
    def config_key(self) -> str:
        """Identifies the embedding configuration a watermark belongs to."""
        return model_to_slug(self.embedding.model)

    @property
    def enabled_strategies(self) -> list[StrategyCfg]:
        return [s for s in self.strategies if s.enabled]


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)
        elif isinstance(obj, list):
            for i, item in enumerate(obj):
                _scan(item, f"{path}[{i}]")

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def validate_config(cfg: RecallConfig) -> None:
    """Raise ConfigError if *cfg* holds values the indexer or router cannot use."""
    if cfg.chunker.chunk_size < 1:
        raise ConfigError(f"chunker.chunk_size must be >= 1, got {cfg.chunker.chunk_size}")
    if not 0 <= cfg.chunker.overlap < cfg.chunker.chunk_size:
        raise ConfigError(
            f"chunker.overlap must be in [0, chunk_size), got {cfg.chunker.overlap} "
            f"with chunk_size {cfg.chunker.chunk_size}"
        )
    if cfg.embedding.batch_size < 1:
        raise ConfigError(f"embedding.batch_size must be >= 1, got {cfg.embedding.batch_size}")
    if cfg.indexer.max_messages_per_run < 1:
        raise ConfigError(
            "indexer.max_messages_per_run must be >= 1, "
            f"got {cfg.indexer.max_messages_per_run}"
        )
    if cfg.indexer.interval_ms < 1:
        raise ConfigError(f"indexer.interval_ms must be >= 1, got {cfg.indexer.interval_ms}")
    if cfg.search.fusion_method not in FUSION_METHODS:
        raise ConfigError(
            f"search.fusion_method must be one of {sorted(FUSION_METHODS)}, "
            f"got '{cfg.search.fusion_method}'"
        )
    if cfg.search.overfetch_multiplier < 1:
        raise ConfigError(
            "search.overfetch_multiplier must be >= 1, "
            f"got {cfg.search.overfetch_multiplier}"
        )

    seen: set[str] = set()
    for s in cfg.strategies:
        if s.type not in STRATEGY_TYPES:
            raise ConfigError(
                f"Unknown strategy type '{s.type}'. Available: {', '.join(sorted(STRATEGY_TYPES))}"
            )
        if not 0.0 <= s.weight <= 1.0:
            raise ConfigError(f"Strategy '{s.type}' weight must be in [0, 1], got {s.weight}")
        if s.type in seen:
            raise ConfigError(f"Strategy '{s.type}' is configured more than once")
        seen.add(s.type)


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _parse_strategy(raw: Any) -> StrategyCfg:
    if isinstance(raw, str):
        return StrategyCfg(type=raw)
    if not isinstance(raw, dict):
        raise ConfigError(f"strategies entries must be a name or a mapping, got {raw!r}")
    return StrategyCfg(
        type=str(raw.get("type", "direct")),
        weight=float(raw.get("weight", 1.0)),
        enabled=bool(raw.get("enabled", True)),
    )


def _cfg_from_dict(data: dict[str, Any]) -> RecallConfig:
    """Build a *RecallConfig* from a merged raw YAML dict."""
    cfg = RecallConfig()

    try:
        if "embedding" in data:
            e = data["embedding"] or {}
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
            )

        if "llm" in data:
            lm = data["llm"] or {}
            cfg.llm = LLMCfg(
                model=str(lm.get("model", cfg.llm.model)),
                max_tokens=int(lm.get("max_tokens", cfg.llm.max_tokens)),
            )

        if "chunker" in data:
            ch = data["chunker"] or {}
            cfg.chunker = ChunkerCfg(
                chunk_size=int(ch.get("chunk_size", cfg.chunker.chunk_size)),
                overlap=int(ch.get("overlap", cfg.chunker.overlap)),
            )

        if "indexer" in data:
            ix = data["indexer"] or {}
            cfg.indexer = IndexerCfg(
                interval_ms=int(ix.get("interval_ms", cfg.indexer.interval_ms)),
                max_messages_per_run=int(
                    ix.get("max_messages_per_run", cfg.indexer.max_messages_per_run)
                ),
                indexable_roles=[
                    str(r) for r in ix.get("indexable_roles", cfg.indexer.indexable_roles)
                ],
                min_content_length=int(
                    ix.get("min_content_length", cfg.indexer.min_content_length)
                ),
            )

        if "strategies" in data:
            raw = data["strategies"] or []
            if not isinstance(raw, list):
                raise ConfigError("strategies must be a list")
            cfg.strategies = [_parse_strategy(s) for s in raw]

        if "search" in data:
            s = data["search"] or {}
            cfg.search = SearchCfg(
                default_limit=int(s.get("default_limit", cfg.search.default_limit)),
                max_limit=int(s.get("max_limit", cfg.search.max_limit)),
                overfetch_multiplier=int(
                    s.get("overfetch_multiplier", cfg.search.overfetch_multiplier)
                ),
                fusion_method=str(s.get("fusion_method", cfg.search.fusion_method)),
                rrf_k=int(s.get("rrf_k", cfg.search.rrf_k)),
                fts_weight=float(s.get("fts_weight", cfg.search.fts_weight)),
                semantic_weight=float(s.get("semantic_weight", cfg.search.semantic_weight)),
                snippet_length=int(s.get("snippet_length", cfg.search.snippet_length)),
            )
    except ConfigError:
        raise
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: RecallConfig) -> RecallConfig:
    """Apply RECALL_* environment variable overrides (layer 2)."""
    if model := os.environ.get("RECALL_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("RECALL_LLM_MODEL"):
        cfg.llm.model = model
    if interval := os.environ.get("RECALL_INDEX_INTERVAL_MS"):
        try:
            cfg.indexer.interval_ms = int(interval)
        except ValueError as exc:
            raise ConfigError(
                f"RECALL_INDEX_INTERVAL_MS must be an integer, got '{interval}'"
            ) from exc
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> RecallConfig:
    """Load and return a merged, validated *RecallConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *recall.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or any
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    validate_config(cfg)
    return cfg


def default_project_yaml() -> str:
    """Commented recall.yaml written by ``recall init``."""
    return (
        "# Recall project configuration.\n"
        "# NEVER store API keys here — use environment variables:\n"
        "#   export OPENAI_API_KEY=sk-...\n"
        "\n"
        "embedding:\n"
        "  model: openai/text-embedding-3-small\n"
        "  batch_size: 50\n"
        "\n"
        "llm:\n"
        "  model: openai/gpt-4o-mini\n"
        "\n"
        "chunker:\n"
        "  chunk_size: 800\n"
        "  overlap: 100\n"
        "\n"
        "indexer:\n"
        "  interval_ms: 60000\n"
        "  max_messages_per_run: 500\n"
        "  indexable_roles: [user, assistant]\n"
        "  min_content_length: 10\n"
        "\n"
        "# keyword and summary strategies call the llm model once per chunk.\n"
        "strategies:\n"
        "  - type: direct\n"
        "    weight: 1.0\n"
        "\n"
        "search:\n"
        "  fusion_method: rrf\n"
        "  rrf_k: 60\n"
    )


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.recall/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# Recall global configuration — model defaults only.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "#   export ANTHROPIC_API_KEY=sk-ant-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "\n"
            "llm:\n"
            "  model: openai/gpt-4o-mini\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
