# config.py
"""
Configuration for a build run.

config-default.json holds the defaults shipped with the extension repo;
config.json (git-ignored) overrides them key by key. extension.json describes
the extension itself and package.json carries its version.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class ConfigurationError(Exception):
    """Missing or malformed configuration; raised before any step runs."""


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EspoSource(_Model):
    repository: str = "https://github.com/espocrm/espocrm.git"
    branch: str = "master"

    @field_validator("repository")
    @classmethod
    def _github_only(cls, v: str) -> str:
        if not v.startswith("https://github.com"):
            raise ValueError(f"unsupported repository URL {v!r}, expected https://github.com/...")
        return v

    def archive_url(self, branch: str) -> str:
        repository = self.repository
        if repository.endswith(".git"):
            repository = repository[:-4]
        if not repository.endswith("/"):
            repository += "/"
        return f"{repository}archive/{branch}.zip"


class DatabaseConfig(_Model):
    host: str = "localhost"
    port: Optional[int] = None
    charset: Optional[str] = None
    dbname: str
    user: str
    password: str = ""
    platform: str = "Mysql"

    @property
    def host_with_port(self) -> str:
        if self.port:
            return f"{self.host}:{self.port}"
        return self.host


class InstallConfig(_Model):
    language: str = "en_US"
    site_url: str = Field(alias="siteUrl")
    default_owner: str = Field("www-data", alias="defaultOwner")
    default_group: str = Field("www-data", alias="defaultGroup")
    admin_username: str = Field("admin", alias="adminUsername")
    admin_password: str = Field("1", alias="adminPassword")


class Config(_Model):
    espocrm: EspoSource = Field(default_factory=EspoSource)
    database: DatabaseConfig
    install: InstallConfig


class BundleParams(_Model):
    requires: List[str] = Field(default_factory=list)


class ExtensionParams(_Model):
    module: str
    name: str
    package_name: Optional[str] = Field(None, alias="packageName")
    bundled: bool = False
    bundle: BundleParams = Field(default_factory=BundleParams)
    scripts: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    author: Optional[str] = None
    acceptable_versions: List[str] = Field(default_factory=list, alias="acceptableVersions")
    php: List[str] = Field(default_factory=list)

    @property
    def mod(self) -> str:
        """Hyphenated module name used by the frontend (MyModule -> my-module)."""
        return camel_case_to_hyphen(self.module)


def camel_case_to_hyphen(value: str) -> str:
    out: list[str] = []
    for i, ch in enumerate(value):
        if ch.isupper() and i > 0 and value[i - 1].islower():
            out.append("-")
        out.append(ch.lower())
    return "".join(out)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{path.name}: invalid JSON ({e})") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name}: expected a JSON object")
    return data


def _format_validation(path_name: str, e: ValidationError) -> str:
    lines = [f"{path_name}: invalid configuration"]
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"])
        lines.append(f"  {loc}: {err['msg']}")
    return "\n".join(lines)


def load_config(cwd: str | Path = ".") -> Config:
    root = Path(cwd)
    default_file = root / "config-default.json"
    local_file = root / "config.json"

    if not default_file.exists() and not local_file.exists():
        raise ConfigurationError(f"no config-default.json or config.json in {root.resolve()}")

    data: Dict[str, Any] = {}
    if default_file.exists():
        data = _read_json(default_file)
    if local_file.exists():
        data = deep_merge(data, _read_json(local_file))

    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(_format_validation("config", e)) from e


def load_extension_params(cwd: str | Path = ".") -> ExtensionParams:
    path = Path(cwd) / "extension.json"
    if not path.exists():
        raise ConfigurationError(f"extension.json not found in {Path(cwd).resolve()}")
    try:
        return ExtensionParams.model_validate(_read_json(path))
    except ValidationError as e:
        raise ConfigurationError(_format_validation("extension.json", e)) from e


def package_version(cwd: str | Path = ".") -> str:
    """Version from test-package.json if present, else package.json."""
    root = Path(cwd)
    path = root / "test-package.json"
    if not path.exists():
        path = root / "package.json"
    if not path.exists():
        raise ConfigurationError("package.json not found")
    version = _read_json(path).get("version")
    if not version:
        raise ConfigurationError(f"{path.name} has no version")
    return str(version)
