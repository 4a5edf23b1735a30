"""
Assessment configuration for tenantscope.

Provides configuration management for Graph access, the tenant credential
block, enabled assessment and inventory domains, and logging.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from tenantscope.collection.enrichment import PERMISSION_MARKERS
from tenantscope.engine.scoring import DEFAULT_MAX_RECOMMENDATIONS
from tenantscope.graph.client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from tenantscope.models import AssessmentDomain, InventoryDomain, Tenant

DEFAULT_CONFIG_DIR = "~/.tenantscope/config"
_EXTENSIONS = (".json", ".yaml", ".yml")


class ConfigurationError(Exception):
    """Raised when a configuration cannot be loaded or is invalid."""

    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GraphSettings:
    """Microsoft Graph connection settings."""

    base_url: str = DEFAULT_BASE_URL
    request_timeout: int = DEFAULT_TIMEOUT

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "base_url": self.base_url,
            "request_timeout": self.request_timeout,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GraphSettings:
        """Create from dictionary."""
        return cls(
            base_url=data.get("base_url", DEFAULT_BASE_URL),
            request_timeout=int(data.get("request_timeout", DEFAULT_TIMEOUT)),
        )


@dataclass
class TenantCredentials:
    """
    App registration used to read a tenant.

    The client secret is never written back by to_dict(); supply it in the
    file or through TENANTSCOPE_CLIENT_SECRET.
    """

    azure_tenant_id: str
    client_id: str
    client_secret: str = ""
    name: str = ""
    tenant_id: str = "default"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tenant_id": self.tenant_id,
            "name": self.name,
            "azure_tenant_id": self.azure_tenant_id,
            "client_id": self.client_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TenantCredentials:
        """Create from dictionary."""
        try:
            return cls(
                azure_tenant_id=data["azure_tenant_id"],
                client_id=data["client_id"],
                client_secret=data.get("client_secret", ""),
                name=data.get("name", ""),
                tenant_id=data.get("tenant_id", "default"),
            )
        except KeyError as e:
            raise ConfigurationError(f"Tenant block is missing {e.args[0]}") from e

    def to_tenant(self) -> Tenant:
        """Build the Tenant record the engines operate on."""
        return Tenant(
            id=self.tenant_id,
            name=self.name or self.azure_tenant_id,
            azure_tenant_id=self.azure_tenant_id,
            client_id=self.client_id,
            client_secret_encrypted=self.client_secret or None,
        )


@dataclass
class LoggingSettings:
    """Logging settings applied by the CLI."""

    level: str = "INFO"
    format: str = "human"  # human or json

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"level": self.level, "format": self.format}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoggingSettings:
        """Create from dictionary."""
        return cls(
            level=data.get("level", "INFO"),
            format=data.get("format", "human"),
        )


@dataclass
class AssessmentConfiguration:
    """
    Complete tenantscope configuration.

    Empty domain lists select every registered module.
    """

    name: str = "default"
    description: str = ""
    graph: GraphSettings = field(default_factory=GraphSettings)
    tenant: TenantCredentials | None = None
    assessment_domains: list[str] = field(default_factory=list)
    inventory_domains: list[str] = field(default_factory=list)
    max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS
    permission_markers: list[str] = field(default_factory=lambda: list(PERMISSION_MARKERS))
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def get_assessment_domains(self) -> list[AssessmentDomain] | None:
        """
        Parse the enabled assessment domains.

        Raises:
            ConfigurationError: If a domain name is unknown
        """
        if not self.assessment_domains:
            return None
        try:
            return [AssessmentDomain.from_string(d) for d in self.assessment_domains]
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def get_inventory_domains(self) -> list[InventoryDomain] | None:
        """
        Parse the enabled inventory domains.

        Raises:
            ConfigurationError: If a domain name is unknown
        """
        if not self.inventory_domains:
            return None
        try:
            return [InventoryDomain.from_string(d) for d in self.inventory_domains]
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def require_tenant(self) -> TenantCredentials:
        """
        Get the tenant block.

        Raises:
            ConfigurationError: If no tenant is configured
        """
        if self.tenant is None:
            raise ConfigurationError(f"Configuration '{self.name}' has no tenant block")
        return self.tenant

    def apply_environment(self) -> AssessmentConfiguration:
        """
        Apply environment variable overrides in place.

        Environment variables:
            TENANTSCOPE_GRAPH_BASE_URL: Graph base URL
            TENANTSCOPE_REQUEST_TIMEOUT: Request timeout in seconds
            TENANTSCOPE_CLIENT_SECRET: Client secret of the tenant block

        Returns:
            self, for chaining
        """
        base_url = os.getenv("TENANTSCOPE_GRAPH_BASE_URL")
        if base_url:
            self.graph.base_url = base_url

        timeout = os.getenv("TENANTSCOPE_REQUEST_TIMEOUT")
        if timeout:
            try:
                self.graph.request_timeout = int(timeout)
            except ValueError as e:
                raise ConfigurationError(
                    f"TENANTSCOPE_REQUEST_TIMEOUT must be an integer: {timeout}"
                ) from e

        secret = os.getenv("TENANTSCOPE_CLIENT_SECRET")
        if secret and self.tenant is not None:
            self.tenant.client_secret = secret
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "graph": self.graph.to_dict(),
            "tenant": self.tenant.to_dict() if self.tenant else None,
            "assessment_domains": list(self.assessment_domains),
            "inventory_domains": list(self.inventory_domains),
            "max_recommendations": self.max_recommendations,
            "permission_markers": list(self.permission_markers),
            "logging": self.logging.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AssessmentConfiguration:
        """Create from dictionary."""
        tenant = data.get("tenant")
        return cls(
            name=data.get("name", "default"),
            description=data.get("description", ""),
            graph=GraphSettings.from_dict(data.get("graph") or {}),
            tenant=TenantCredentials.from_dict(tenant) if tenant else None,
            assessment_domains=list(data.get("assessment_domains") or []),
            inventory_domains=list(data.get("inventory_domains") or []),
            max_recommendations=int(
                data.get("max_recommendations", DEFAULT_MAX_RECOMMENDATIONS)
            ),
            permission_markers=list(
                data.get("permission_markers") or PERMISSION_MARKERS
            ),
            logging=LoggingSettings.from_dict(data.get("logging") or {}),
            created_at=datetime.fromisoformat(data["created_at"])
            if "created_at" in data
            else _utcnow(),
            updated_at=datetime.fromisoformat(data["updated_at"])
            if "updated_at" in data
            else _utcnow(),
        )

    @classmethod
    def from_json(cls, json_str: str) -> AssessmentConfiguration:
        """Create from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_file(cls, path: str) -> AssessmentConfiguration:
        """
        Load configuration from a JSON or YAML file.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        path = os.path.expanduser(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Malformed configuration {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration {path} must be a mapping")
        return cls.from_dict(data)

    def save(self, path: str) -> None:
        """Save configuration to file."""
        path = os.path.expanduser(path)
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            if path.endswith(".json"):
                json.dump(self.to_dict(), f, indent=2)
            else:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


class ConfigurationManager:
    """
    Manages named configurations in a directory.

    Provides methods for loading, saving, and managing multiple
    tenant configurations.
    """

    def __init__(self, config_dir: str = DEFAULT_CONFIG_DIR):
        """
        Initialize configuration manager.

        Args:
            config_dir: Directory for storing configurations
        """
        self.config_dir = os.path.expanduser(config_dir)
        Path(self.config_dir).mkdir(parents=True, exist_ok=True)

    def list_configurations(self) -> list[str]:
        """List available configuration names."""
        configs = set()
        for ext in _EXTENSIONS:
            for file in Path(self.config_dir).glob(f"*{ext}"):
                configs.add(file.stem)
        return sorted(configs)

    def load(self, name: str = "default") -> AssessmentConfiguration:
        """
        Load a configuration by name.

        Returns:
            The stored configuration, or a fresh one if none exists
        """
        for ext in _EXTENSIONS:
            path = os.path.join(self.config_dir, f"{name}{ext}")
            if os.path.exists(path):
                return AssessmentConfiguration.from_file(path)

        return AssessmentConfiguration(name=name)

    def save(self, config: AssessmentConfiguration, format: str = "json") -> str:
        """
        Save a configuration.

        Args:
            config: Configuration to save
            format: Output format (json or yaml)

        Returns:
            Path to saved file
        """
        ext = ".yaml" if format == "yaml" else ".json"
        path = os.path.join(self.config_dir, f"{config.name}{ext}")
        config.updated_at = _utcnow()
        config.save(path)
        return path

    def delete(self, name: str) -> bool:
        """
        Delete a configuration.

        Returns:
            True if deleted, False if not found
        """
        for ext in _EXTENSIONS:
            path = os.path.join(self.config_dir, f"{name}{ext}")
            if os.path.exists(path):
                os.remove(path)
                return True
        return False


def load_config_from_env() -> AssessmentConfiguration:
    """
    Load configuration from environment variables.

    Environment variables:
        TENANTSCOPE_CONFIG_FILE: Path to configuration file
        TENANTSCOPE_AZURE_TENANT_ID: Azure tenant id of the tenant block
        TENANTSCOPE_CLIENT_ID: App registration client id
        TENANTSCOPE_CLIENT_SECRET: App registration client secret
        plus the overrides read by AssessmentConfiguration.apply_environment()

    Returns:
        AssessmentConfiguration instance
    """
    config_file = os.getenv("TENANTSCOPE_CONFIG_FILE")
    if config_file and os.path.exists(config_file):
        return AssessmentConfiguration.from_file(config_file).apply_environment()

    config = AssessmentConfiguration()
    azure_tenant_id = os.getenv("TENANTSCOPE_AZURE_TENANT_ID")
    client_id = os.getenv("TENANTSCOPE_CLIENT_ID")
    if azure_tenant_id and client_id:
        config.tenant = TenantCredentials(
            azure_tenant_id=azure_tenant_id, client_id=client_id
        )
    return config.apply_environment()
