from __future__ import annotations
from typing import Literal, Optional
from pathlib import Path
import os
from pydantic import (
    BaseModel,
    model_validator,
    ConfigDict,
    PrivateAttr,
)


# ---------- Leaf models ----------

class EnvCfg(BaseModel):
    project_name: str = "datadeck"
    timezone: str = "UTC"


class StorageCfg(BaseModel):
    backend: Literal["memory", "local"] = "local"
    root: str = "data/store"


class AnalysisCfg(BaseModel):
    # a numeric column with fewer distinct values than this can be the X axis
    category_max_unique: int = 50
    max_metrics: int = 3


class PipelineCfg(BaseModel):
    chart_row_cap: int = 1000
    table_row_cap: int = 100
    pie_min_share_pct: float = 0.5
    pie_max_slices: int = 10

    @model_validator(mode="after")
    def _caps_ok(self):
        for name in ("chart_row_cap", "table_row_cap", "pie_max_slices"):
            if int(getattr(self, name)) < 1:
                raise ValueError(f"pipeline.{name} must be >= 1")
        return self


class FiltersCfg(BaseModel):
    value_dropdown_limit: int = 500


class LoggingCfg(BaseModel):
    level: str = "INFO"
    structured_json: bool = True


# ---------- TOML reading ----------

_SECTIONS = ("env", "storage", "analysis", "pipeline", "filters", "logging")
# BOM and zero-width characters some editors leave at the top of a file
_INVISIBLE_PREFIX = "\ufeff\u200b\u200c\u200d\u2060"


def _read_toml(p: Path) -> dict:
    try:
        import tomllib  # py>=3.11
    except ImportError:
        import tomli as tomllib

    try:
        with p.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError:
        pass

    cleaned = p.read_text(encoding="utf-8-sig", errors="replace").strip().lstrip(_INVISIBLE_PREFIX)
    try:
        return tomllib.loads(cleaned)
    except tomllib.TOMLDecodeError as e:
        raise RuntimeError(f"Invalid config TOML at {p}: {e} (starts with {cleaned[:80]!r})") from e


# ---------- Root ----------

class RootCfg(BaseModel):
    model_config = ConfigDict(extra="ignore")

    env: EnvCfg = EnvCfg()
    storage: StorageCfg = StorageCfg()
    analysis: AnalysisCfg = AnalysisCfg()
    pipeline: PipelineCfg = PipelineCfg()
    filters: FiltersCfg = FiltersCfg()
    logging: LoggingCfg = LoggingCfg()

    # Private attribute (not a field); used only to resolve relative paths
    _config_dir: Optional[Path] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _normalize_paths(self):
        if self._config_dir:
            # A conventional "config" folder resolves against the project root (its parent);
            # otherwise resolve relative to the config file's directory.
            base_dir = self._config_dir.parent if self._config_dir.name.lower() == "config" else self._config_dir
            root = Path(self.storage.root)
            if not root.is_absolute():
                self.storage.root = str((base_dir / root).resolve())
        return self

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str]) -> "RootCfg":
        p = Path(path)
        raw = {k: v for k, v in _read_toml(p).items() if k in _SECTIONS}
        cfg = cls.model_validate(raw)
        cfg._config_dir = p.parent.resolve()
        return cfg._normalize_paths()

    @classmethod
    def load(cls, path: str | None = None) -> "RootCfg":
        final = Path(path or os.environ.get("DATADECK_CFG", "config/config.toml")).resolve()
        if not final.exists() and path is None:
            # no config file on disk: code defaults apply
            return cls()
        return cls.from_toml(final)


def load_config(path: str | None = None) -> RootCfg:
    return RootCfg.load(path)
