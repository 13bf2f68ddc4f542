"""
Frozenscope Configuration

Settings are read from TOML, looked up in this order:
  1. an explicit path (--config on the command line)
  2. frozenscope.toml in the working directory
  3. the [tool.frozenscope] table of pyproject.toml in the working directory
  4. built-in defaults

A frozenscope.toml may hold the keys at top level or under
[tool.frozenscope]:

    trace_level = 2        # 0-3, see scope_trace
    lookup_cache = true    # ContextVar lookup cache on stacks
    bench_size = 10000     # entries used by `scopectl bench`
    bench_seed = 0
"""

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

# TOML parsing - use stdlib tomllib in 3.11+, tomli before that
try:
    import tomllib
except ImportError:
    import tomli as tomllib

import scope_trace
from ctxstack import Context, ContextStack, StackRegistry

CONFIG_FILENAME = "frozenscope.toml"
PYPROJECT_FILENAME = "pyproject.toml"


class ConfigError(Exception):
    """Error reading or validating configuration"""
    pass


@dataclass
class ScopeConfig:
    """Effective settings for the library and the scopectl tool"""
    trace_level: int = scope_trace.TRACE_OFF
    lookup_cache: bool = True
    bench_size: int = 10000
    bench_seed: int = 0
    source: Optional[str] = None  # file the settings came from, None for defaults

    @classmethod
    def from_mapping(cls, data: Dict[str, Any], source: Optional[str] = None) -> 'ScopeConfig':
        known = {f.name for f in fields(cls)} - {"source"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"{source or 'config'}: unknown setting(s): {', '.join(unknown)}")

        config = cls(source=source, **data)
        config.validate()
        return config

    def validate(self):
        where = self.source or "config"
        level = self.trace_level
        if type(level) is not int or not scope_trace.TRACE_OFF <= level <= scope_trace.TRACE_VERBOSE:
            raise ConfigError(f"{where}: trace_level must be an integer 0-3, got {level!r}")
        if type(self.lookup_cache) is not bool:
            raise ConfigError(f"{where}: lookup_cache must be true or false, got {self.lookup_cache!r}")
        if type(self.bench_size) is not int or self.bench_size <= 0:
            raise ConfigError(f"{where}: bench_size must be a positive integer, got {self.bench_size!r}")
        if type(self.bench_seed) is not int:
            raise ConfigError(f"{where}: bench_seed must be an integer, got {self.bench_seed!r}")

    def apply(self):
        """Install process-wide settings (trace level)."""
        scope_trace.set_trace_level(self.trace_level)

    def new_stack(self, context: Optional[Context] = None) -> ContextStack:
        return ContextStack(context, use_cache=self.lookup_cache)

    def new_registry(self) -> StackRegistry:
        return StackRegistry(use_cache=self.lookup_cache)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {path}")
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e.strerror or e}")
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML in {path}: {e}")


def _tool_table(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    tool = data.get("tool")
    if isinstance(tool, dict) and "frozenscope" in tool:
        table = tool["frozenscope"]
        if not isinstance(table, dict):
            raise ConfigError("[tool.frozenscope] must be a table")
        return table
    return None


def load_config(path: Optional[str] = None, cwd: Optional[str] = None) -> ScopeConfig:
    """Load settings from `path` or from the working directory."""
    base = Path(cwd) if cwd else Path(os.getcwd())

    if path is not None:
        config_path = Path(path)
        data = _read_toml(config_path)
        if config_path.name == PYPROJECT_FILENAME:
            table = _tool_table(data) or {}
        else:
            table = _tool_table(data)
            if table is None:
                table = data
        return ScopeConfig.from_mapping(table, source=str(config_path))

    candidate = base / CONFIG_FILENAME
    if candidate.is_file():
        data = _read_toml(candidate)
        table = _tool_table(data)
        return ScopeConfig.from_mapping(data if table is None else table, source=str(candidate))

    pyproject = base / PYPROJECT_FILENAME
    if pyproject.is_file():
        table = _tool_table(_read_toml(pyproject))
        if table is not None:
            return ScopeConfig.from_mapping(table, source=str(pyproject))

    return ScopeConfig()
