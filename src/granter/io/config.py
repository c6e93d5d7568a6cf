"""
Configuration for granter.

Defines GranterSettings, a frozen dataclass carrying runtime configuration for
document IO, logging, batch evaluation and structural validation.

Source of truth
- Validation tolerances default to granter.core.constants via
  granter.core.validation.ValidationOptions.

Import DAG discipline
- Depends only on stdlib and granter.core.

Notes
- Precedence is environment > TOML > defaults.
- Invalid values in a source are ignored and the previous layer is kept.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal

from granter.core.validation import ValidationOptions

logger = logging.getLogger(__name__)

Format = Literal["yaml", "json", "cbor"]
FORMATS: tuple[str, ...] = ("yaml", "json", "cbor")
LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_MAX_DOCUMENT_BYTES = 1_048_576


def _bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}
    return False


@dataclass(frozen=True)
class GranterSettings:
    """
    Runtime settings for granter.

    Attributes:
        max_document_bytes (int): Largest document accepted by granter.io.documents (>= 1).
        default_format (Literal["yaml","json","cbor"]): Format used when a path
            suffix does not name one.
        log_level (str): Level configured by the CLI ("DEBUG" .. "CRITICAL").
        max_workers (int): Threads used by granter.rating.engine.evaluate_outcomes (>= 1).
        validation (ValidationOptions): Rule toggles and tolerances of the
            structural validator.

    Examples:
        >>> from granter.io import GranterSettings
        >>> GranterSettings(max_workers=4)  # doctest: +ELLIPSIS
        GranterSettings(...)
    """

    max_document_bytes: int = DEFAULT_MAX_DOCUMENT_BYTES
    default_format: Format = "yaml"
    log_level: str = "INFO"
    max_workers: int = 1
    # Nested validation options (env/TOML override via GranterSettings._apply_mapping)
    validation: ValidationOptions = field(default_factory=ValidationOptions)

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _apply_mapping(cls, base: GranterSettings, cfg: dict[str, Any] | None) -> GranterSettings:
        """Apply a loose config mapping onto GranterSettings, returning a new instance."""
        if not isinstance(cfg, dict):
            return base

        s = base

        if "max_document_bytes" in cfg:
            try:
                size = int(cfg["max_document_bytes"])
            except (TypeError, ValueError):
                logger.warning("ignoring max_document_bytes=%r", cfg["max_document_bytes"])
            else:
                if size >= 1:
                    s = replace(s, max_document_bytes=size)

        if "default_format" in cfg and isinstance(cfg["default_format"], str):
            fmt = cfg["default_format"].strip().lower()
            if fmt in FORMATS:
                s = replace(s, default_format=fmt)  # type: ignore[arg-type]

        if "log_level" in cfg and isinstance(cfg["log_level"], str):
            level = cfg["log_level"].strip().upper()
            if level in LOG_LEVELS:
                s = replace(s, log_level=level)

        if "max_workers" in cfg:
            try:
                workers = int(cfg["max_workers"])
            except (TypeError, ValueError):
                logger.warning("ignoring max_workers=%r", cfg["max_workers"])
            else:
                if workers >= 1:
                    s = replace(s, max_workers=workers)

        # validation (nested mapping)
        if "validation" in cfg and isinstance(cfg["validation"], dict):
            v = cfg["validation"]
            curr = s.validation

            epsilon = curr.share_ratio_epsilon
            if "share_ratio_epsilon" in v:
                try:
                    candidate = float(v["share_ratio_epsilon"])
                except (TypeError, ValueError):
                    logger.warning("ignoring share_ratio_epsilon=%r", v["share_ratio_epsilon"])
                else:
                    if candidate >= 0:
                        epsilon = candidate

            s = replace(
                s,
                validation=replace(
                    curr,
                    share_ratio_epsilon=epsilon,
                    unique_actor_address=_bool(
                        v.get("unique_actor_address", curr.unique_actor_address)
                    ),
                    compute_mapping_consistency=_bool(
                        v.get("compute_mapping_consistency", curr.compute_mapping_consistency)
                    ),
                    referential_integrity=_bool(
                        v.get("referential_integrity", curr.referential_integrity)
                    ),
                ),
            )

        return s

    @classmethod
    def from_env(cls, base: GranterSettings | None = None, prefix: str = "GRANTER_") -> GranterSettings:
        """
        Build GranterSettings from environment variables. Precedence is env > base (if provided) > defaults.

        Recognized variables:
            - GRANTER_MAX_DOCUMENT_BYTES
            - GRANTER_DEFAULT_FORMAT ("yaml" | "json" | "cbor")
            - GRANTER_LOG_LEVEL
            - GRANTER_MAX_WORKERS
            - GRANTER_VALIDATION_SHARE_RATIO_EPSILON
            - GRANTER_VALIDATION_UNIQUE_ACTOR_ADDRESS (1/0/true/false/yes/no/on/off)
            - GRANTER_VALIDATION_COMPUTE_MAPPING_CONSISTENCY
            - GRANTER_VALIDATION_REFERENTIAL_INTEGRITY
        """
        s = base or cls()

        def get(name: str) -> str | None:
            return os.getenv(prefix + name)

        mapping: dict[str, Any] = {}
        for key in ("max_document_bytes", "default_format", "log_level", "max_workers"):
            v = get(key.upper())
            if v:
                mapping[key] = v

        # Nested validation options via env
        for key in (
            "share_ratio_epsilon",
            "unique_actor_address",
            "compute_mapping_consistency",
            "referential_integrity",
        ):
            v = get("VALIDATION_" + key.upper())
            if v:
                mapping.setdefault("validation", {})[key] = v

        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> GranterSettings:
        """
        Build GranterSettings from a TOML file.

        Search order when `path` is None:
            1) ./granter.toml (with either a [granter] table or direct keys)
            2) ./pyproject.toml under [tool.granter]

        Returns defaults if no file is present or none can be parsed.
        """
        s = cls()

        def _load_toml(p: Path) -> dict[str, Any] | None:
            try:
                with p.open("rb") as fh:
                    return tomllib.load(fh)
            except (OSError, tomllib.TOMLDecodeError) as exc:
                logger.warning("cannot read settings from %s: %s", p, exc)
                return None

        cfg: dict[str, Any] | None = None

        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "granter.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        for p in cand:
            if not p.exists():
                continue
            data = _load_toml(p)
            if not isinstance(data, dict):
                continue
            if p.name == "pyproject.toml":
                # Expect [tool.granter]
                tool = data.get("tool", {})
                cfg = tool.get("granter") if isinstance(tool, dict) else None
            else:
                # granter.toml - accept either [granter] table or top-level keys
                if "granter" in data and isinstance(data["granter"], dict):
                    cfg = data["granter"]
                else:
                    cfg = data
            if cfg:
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> GranterSettings:
        """
        Load GranterSettings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search defaults (granter.toml, pyproject.toml).

        Returns:
            GranterSettings
        """
        s = cls.from_toml(path)
        s = cls.from_env(base=s)
        return s
