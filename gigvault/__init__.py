"""GigVault reward economy engine."""

__version__ = "1.0.0"
