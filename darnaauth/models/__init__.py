"""
Database models for the Darna authentication service.
"""
from .user import User, RefreshToken, UserRole, SubscriptionType

__all__ = ["User", "RefreshToken", "UserRole", "SubscriptionType"]
