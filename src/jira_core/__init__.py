"""Jira core - cached, error-normalized access to the Jira REST API.

Modules:
- config: environment-driven settings
- cache: TTL cache store and cache key generation
- invalidation: rule-based cache invalidation after writes
- errors: error taxonomy and normalization of transport failures
- schemas: request payload models
- client: Jira REST client built on the modules above
"""

__version__ = "1.0.0"
