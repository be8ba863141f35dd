"""
Accounts Module for Librarium
"""

from librarium.accounts.service import UserService

__all__ = ["UserService"]
