"""
Configuration package for the Logos client.

This package provides centralized configuration management for host
applications, loading settings from environment variables with appropriate
validation, and the explicit option struct consumed by ``LogosClient``.
"""

from logos_client.config.settings import Settings

# Create a singleton instance of Settings to be imported by other modules
settings = Settings()

__all__ = ["settings"]
