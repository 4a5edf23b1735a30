"""
Configuration management for tenantscope.

Provides configuration classes and utilities for Graph access, tenant
credentials, enabled domains and logging.
"""

from tenantscope.config.settings import (
    AssessmentConfiguration,
    ConfigurationError,
    ConfigurationManager,
    GraphSettings,
    LoggingSettings,
    TenantCredentials,
    load_config_from_env,
)

__all__ = [
    "AssessmentConfiguration",
    "ConfigurationError",
    "ConfigurationManager",
    "GraphSettings",
    "LoggingSettings",
    "TenantCredentials",
    "load_config_from_env",
]
