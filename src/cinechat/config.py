"""cinechat configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (CINECHAT_GENERATION_MODEL, CINECHAT_EMBEDDING_MODEL,
                             CINECHAT_API_KEYS)
  3. Per-project cinechat.yaml  (working directory)
  4. Global ~/.cinechat/config.yaml
  5. Hardcoded defaults

Config files must never contain API keys; the credential pool is read from
CINECHAT_API_KEYS only. All YAML reads use yaml.safe_load() — never yaml.load().
The loaded config is immutable and built once at startup.
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".cinechat"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "cinechat.yaml"

CREDENTIALS_ENV = "CINECHAT_API_KEYS"

# Fields that suggest an API key; forbidden in every config file.
# Does NOT match legitimate config keys like max_tokens or top_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)s?"  # api_key, api-keys, api_secret, apikey
    r"|_token$"                   # access_token, auth_token (suffix)
    r"|^token$"                   # exactly "token" (standalone)
    r"|_secret$"                  # client_secret (suffix)
    r"|^secret$"                  # exactly "secret" (standalone)
    r"|passw(?:ord|d)"            # password, passwd
    r"|credential",               # credential, credentials
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["llm", "ingest", "chunk", "cache", "retrieval", "pagination", "database"]
)

DEFAULT_TTL_BANDS: dict[str, float] = {
    "5s": 5,
    "15s": 15,
    "1m": 60,
    "5m": 5 * 60,
    "15m": 15 * 60,
    "30m": 30 * 60,
    "1h": 60 * 60,
    "6h": 6 * 60 * 60,
    "12h": 12 * 60 * 60,
    "1d": 24 * 60 * 60,
}

_CHUNK_METHODS = ("sentence", "paragraph", "fixed")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when configuration is invalid, forbidden, or incomplete."""


class MissingCredentialsError(ConfigError):
    """Raised when an upstream call is attempted with an empty credential pool."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LlmCfg:
    """Upstream model configuration (cinechat.yaml: llm:).

    Attributes:
        generation_model: LiteLLM model string used to answer questions.
        embedding_model: LiteLLM embedding model string.
        timeout_seconds: Upper bound for a single upstream call.
        max_output_tokens: Cap on generated answer length.
        temperature: Sampling temperature for answers.
        num_retries: LiteLLM transient-error retries per call (same credential).
        max_rotation_attempts: Credentials tried after rate limits before giving up.
    """

    generation_model: str = "gemini/gemini-2.0-flash"
    embedding_model: str = "gemini/text-embedding-004"
    timeout_seconds: float = 30.0
    max_output_tokens: int = 1000
    temperature: float = 0.7
    num_retries: int = 1
    max_rotation_attempts: int = 5
    credentials: str = field(default="", repr=False)


@dataclass(frozen=True)
class IngestCfg:
    """Upload limits (cinechat.yaml: ingest:)."""

    max_file_size_bytes: int = 10 * 1024 * 1024
    allowed_extensions: tuple[str, ...] = (".txt", ".md", ".pdf")


@dataclass(frozen=True)
class ChunkCfg:
    """Chunker tunables (cinechat.yaml: chunk:). Sizes are in characters."""

    max_size: int = 800
    overlap: int = 100
    min_size: int = 50
    method: str = "sentence"  # sentence | paragraph | fixed
    separators: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ")


@dataclass(frozen=True)
class CacheCfg:
    """In-process TTL cache (cinechat.yaml: cache:)."""

    ttl_bands: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_TTL_BANDS))
    embedding_band: str = "12h"
    chunk_candidates_band: str = "1m"
    sweep_interval: int = 256


@dataclass(frozen=True)
class RetrievalCfg:
    """Semantic cache + retrieval policy (cinechat.yaml: retrieval:)."""

    semantic_high_confidence_threshold: float = 0.85
    semantic_relevance_threshold: float = 0.3
    top_k: int = 5
    semantic_candidate_limit: int = 200


@dataclass(frozen=True)
class PaginationCfg:
    """Listing defaults (cinechat.yaml: pagination:)."""

    default_limit: int = 10
    max_limit: int = 100
    default_offset: int = 0


@dataclass(frozen=True)
class DatabaseCfg:
    """Storage location (cinechat.yaml: database:)."""

    path: str = ".cinechat.db"


@dataclass(frozen=True)
class CinechatConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    llm: LlmCfg = field(default_factory=LlmCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    chunk: ChunkCfg = field(default_factory=ChunkCfg)
    cache: CacheCfg = field(default_factory=CacheCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    pagination: PaginationCfg = field(default_factory=PaginationCfg)
    database: DatabaseCfg = field(default_factory=DatabaseCfg)


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
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {CREDENTIALS_ENV}=<key1>,<key2>"
                    )
                _scan(v, full)

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


def _validate(cfg: CinechatConfig) -> None:
    """Raise ConfigError for values that would break the pipeline."""
    r = cfg.retrieval
    for name in ("semantic_high_confidence_threshold", "semantic_relevance_threshold"):
        value = getattr(r, name)
        if not -1.0 <= value <= 1.0:
            raise ConfigError(f"retrieval.{name} must be in [-1, 1], got {value}")
    if r.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {r.top_k}")

    c = cfg.chunk
    if c.max_size < 1:
        raise ConfigError(f"chunk.max_size must be >= 1, got {c.max_size}")
    if c.min_size < 0:
        raise ConfigError(f"chunk.min_size must be >= 0, got {c.min_size}")
    if not 0 <= c.overlap < c.max_size:
        raise ConfigError(
            f"chunk.overlap must be in [0, max_size), got {c.overlap} (max_size={c.max_size})"
        )
    if c.method not in _CHUNK_METHODS:
        raise ConfigError(
            f"chunk.method must be one of {', '.join(_CHUNK_METHODS)}, got '{c.method}'"
        )

    bands = cfg.cache.ttl_bands
    for name, seconds in bands.items():
        if seconds <= 0:
            raise ConfigError(f"cache.ttl_bands.{name} must be positive, got {seconds}")
    for band in (cfg.cache.embedding_band, cfg.cache.chunk_candidates_band):
        if band not in bands:
            raise ConfigError(f"cache band '{band}' is not defined in cache.ttl_bands")

    p = cfg.pagination
    if not 1 <= p.default_limit <= p.max_limit:
        raise ConfigError("pagination.default_limit must be in [1, max_limit]")


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


def _cfg_from_dict(data: dict[str, Any]) -> CinechatConfig:
    """Build a *CinechatConfig* from a merged raw YAML dict."""
    for name in sorted(_KNOWN_SECTIONS):
        if data.get(name) is not None and not isinstance(data[name], dict):
            raise ConfigError(f"Config section '{name}' must be a mapping.")

    cfg = CinechatConfig()

    if "llm" in data:
        lm = data["llm"] or {}
        d = cfg.llm
        cfg = replace(
            cfg,
            llm=LlmCfg(
                generation_model=str(lm.get("generation_model", d.generation_model)),
                embedding_model=str(lm.get("embedding_model", d.embedding_model)),
                timeout_seconds=float(lm.get("timeout_seconds", d.timeout_seconds)),
                max_output_tokens=int(lm.get("max_output_tokens", d.max_output_tokens)),
                temperature=float(lm.get("temperature", d.temperature)),
                num_retries=int(lm.get("num_retries", d.num_retries)),
                max_rotation_attempts=int(
                    lm.get("max_rotation_attempts", d.max_rotation_attempts)
                ),
            ),
        )

    if "ingest" in data:
        ing = data["ingest"] or {}
        d = cfg.ingest
        exts = ing.get("allowed_extensions", d.allowed_extensions)
        cfg = replace(
            cfg,
            ingest=IngestCfg(
                max_file_size_bytes=int(ing.get("max_file_size_bytes", d.max_file_size_bytes)),
                allowed_extensions=tuple(_normalize_ext(e) for e in exts),
            ),
        )

    if "chunk" in data:
        ch = data["chunk"] or {}
        d = cfg.chunk
        cfg = replace(
            cfg,
            chunk=ChunkCfg(
                max_size=int(ch.get("max_size", d.max_size)),
                overlap=int(ch.get("overlap", d.overlap)),
                min_size=int(ch.get("min_size", d.min_size)),
                method=str(ch.get("method", d.method)),
                separators=tuple(str(s) for s in ch.get("separators", d.separators)),
            ),
        )

    if "cache" in data:
        ca = data["cache"] or {}
        d = cfg.cache
        bands = {str(k): float(v) for k, v in ca.get("ttl_bands", d.ttl_bands).items()}
        cfg = replace(
            cfg,
            cache=CacheCfg(
                ttl_bands=bands,
                embedding_band=str(ca.get("embedding_band", d.embedding_band)),
                chunk_candidates_band=str(
                    ca.get("chunk_candidates_band", d.chunk_candidates_band)
                ),
                sweep_interval=int(ca.get("sweep_interval", d.sweep_interval)),
            ),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        d = cfg.retrieval
        cfg = replace(
            cfg,
            retrieval=RetrievalCfg(
                semantic_high_confidence_threshold=float(
                    r.get(
                        "semantic_high_confidence_threshold",
                        d.semantic_high_confidence_threshold,
                    )
                ),
                semantic_relevance_threshold=float(
                    r.get("semantic_relevance_threshold", d.semantic_relevance_threshold)
                ),
                top_k=int(r.get("top_k", d.top_k)),
                semantic_candidate_limit=int(
                    r.get("semantic_candidate_limit", d.semantic_candidate_limit)
                ),
            ),
        )

    if "pagination" in data:
        p = data["pagination"] or {}
        d = cfg.pagination
        cfg = replace(
            cfg,
            pagination=PaginationCfg(
                default_limit=int(p.get("default_limit", d.default_limit)),
                max_limit=int(p.get("max_limit", d.max_limit)),
                default_offset=int(p.get("default_offset", d.default_offset)),
            ),
        )

    if "database" in data:
        db = data["database"] or {}
        cfg = replace(cfg, database=DatabaseCfg(path=str(db.get("path", cfg.database.path))))

    return cfg


def _normalize_ext(ext: str) -> str:
    ext = str(ext).strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def _apply_env_overrides(cfg: CinechatConfig) -> CinechatConfig:
    """Apply CINECHAT_* environment variable overrides (layer 2)."""
    llm = cfg.llm
    if model := os.environ.get("CINECHAT_GENERATION_MODEL"):
        llm = replace(llm, generation_model=model)
    if model := os.environ.get("CINECHAT_EMBEDDING_MODEL"):
        llm = replace(llm, embedding_model=model)
    if keys := os.environ.get(CREDENTIALS_ENV):
        llm = replace(llm, credentials=keys)
    return replace(cfg, llm=llm)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config '{path}' must contain a mapping at the top level.")
    return raw


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> CinechatConfig:
    """Load and return a merged, validated *CinechatConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *cinechat.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *CinechatConfig* with env var overrides applied.

    Raises:
        ConfigError: If a config file contains API-key-like fields or a value
            is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _check_no_api_keys(raw_project, project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except ConfigError:
        raise
    except (AttributeError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg
