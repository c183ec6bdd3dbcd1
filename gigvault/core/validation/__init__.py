"""Input validation for caller-supplied values."""

from gigvault.core.validation.input_validator import InputValidator

__all__ = ["InputValidator"]
