"""Privileged account operations."""

from gigvault.modules.admin.service import AdminService

__all__ = ["AdminService"]
