"""Configuration for pvetmpl.

Every setting is resolved by the same precedence chain: an explicit
override wins over a ``PVETMPL_*`` environment variable, which wins over a
discovered value (where one exists), which wins over the hard default.
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

from pvetmpl import __version__
from pvetmpl.errors import ConfigError
from pvetmpl.families import ResolvedTemplate

ENV_PREFIX = "PVETMPL_"

RESOLV_CONF = Path("/etc/resolv.conf")


@dataclass(frozen=True)
class ResolverConfig:
    """Network and discovery settings for the release resolver."""

    timeout: float = 5.0  # seconds, per request
    retries: int = 1  # extra attempts on transient failures
    overall_timeout: float = 60.0  # seconds, whole discovery pass
    max_workers: int = 8
    limit: int = 3
    user_agent: str = field(default=f"pvetmpl/{__version__}")


@dataclass(frozen=True)
class TemplateSettings:
    """Operator-facing settings for the template that will be built."""

    template_name: str
    vm_id: int | None = None
    memory: int = 2048  # MB
    cores: int = 1
    disk_size: int = 40  # GB
    cloud_user: str = "devops"
    nameserver: str | None = None
    searchdomain: str | None = None

    def validate(self) -> "TemplateSettings":
        """Check every rule and raise ConfigError listing all violations."""
        problems = []
        if not self.template_name or not self.template_name.strip():
            problems.append("template name can not be blank")
        if self.vm_id is not None and not 100 <= self.vm_id <= 1000000:
            problems.append("VM ID should be a number between 100 to 1000000")
        if self.memory < 1024:
            problems.append("memory size should be at least 1024 MB")
        if self.cores < 1:
            problems.append("the number of cores should be at least 1")
        if self.disk_size < 40:
            problems.append("the disk size should be at least 40 GB")
        if not self.cloud_user or not self.cloud_user.strip():
            problems.append("user name can not be blank")
        if problems:
            raise ConfigError("; ".join(problems))
        return self


def _convert(name: str, raw: str, kind: type):
    try:
        return kind(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from e


def _resolve(name: str, override, discovered, default, kind: type):
    """Apply override > environment > discovered > default."""
    if override is not None:
        return kind(override)
    raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
    if raw:
        return _convert(name, raw, kind)
    if discovered is not None:
        return discovered
    return default


def load_config(**overrides) -> ResolverConfig:
    """Build a ResolverConfig from overrides, the environment and defaults."""
    defaults = ResolverConfig()
    values = {}
    for f in fields(ResolverConfig):
        kind = type(getattr(defaults, f.name))
        values[f.name] = _resolve(
            f.name, overrides.pop(f.name, None), None, getattr(defaults, f.name), kind
        )
    if overrides:
        raise ConfigError(f"Unknown settings: {', '.join(sorted(overrides))}")

    config = replace(defaults, **values)
    if config.timeout <= 0 or config.overall_timeout <= 0:
        raise ConfigError("Timeouts must be positive")
    if config.retries < 0:
        raise ConfigError("Retries can not be negative")
    if config.max_workers < 1 or config.limit < 1:
        raise ConfigError("max_workers and limit must be at least 1")
    return config


def get_download_dir() -> Path:
    """Get the directory cloud images are downloaded into."""
    path = os.environ.get(f"{ENV_PREFIX}DOWNLOAD_DIR")
    if path:
        return Path(path)
    return Path.cwd()


def read_resolv_conf(path: Path = RESOLV_CONF) -> dict[str, str]:
    """Return the last nameserver and search entries of a resolv.conf."""
    found: dict[str, str] = {}
    try:
        lines = path.read_text().splitlines()
    except OSError:
        return found

    for line in lines:
        parts = line.split()
        if len(parts) < 2:
            continue
        if parts[0] == "nameserver":
            found["nameserver"] = parts[1]
        elif parts[0] == "search":
            found["searchdomain"] = parts[1]
    return found


def load_template_settings(
    resolved: ResolvedTemplate,
    resolv_conf: Path = RESOLV_CONF,
    **overrides,
) -> TemplateSettings:
    """Build validated TemplateSettings for a resolved template.

    The template's default name and the host's resolver settings act as the
    discovered values in the precedence chain.
    """
    discovered = {"template_name": resolved.default_template_name}
    discovered.update(read_resolv_conf(resolv_conf))

    defaults = {
        "vm_id": (None, int),
        "memory": (2048, int),
        "cores": (1, int),
        "disk_size": (40, int),
        "cloud_user": ("devops", str),
        "template_name": (resolved.default_template_name, str),
        "nameserver": (None, str),
        "searchdomain": (None, str),
    }
    values = {}
    for name, (default, kind) in defaults.items():
        values[name] = _resolve(
            name, overrides.pop(name, None), discovered.get(name), default, kind
        )
    if overrides:
        raise ConfigError(f"Unknown settings: {', '.join(sorted(overrides))}")

    return TemplateSettings(**values).validate()
