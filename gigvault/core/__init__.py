"""
Core infrastructure layer for GigVault.

Purpose
-------
Provide the infrastructure subsystems every resolver depends on:

- Configuration management (Config, ConfigManager)
- Database subsystem (DatabaseService, DatabaseRetryPolicy)
- Logging (structured logging, logger factory, LogContext)
- Event bus (in-process pub/sub)
- Validation utilities (InputValidator)
- Infrastructure exceptions (GigInfrastructureException hierarchy)

Import from the subpackages directly; this package intentionally re-exports
nothing so that importing one subsystem never drags in the others.
"""
