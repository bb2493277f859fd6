"""Configuration models for the chat client."""

from .model import ClientOptions, ConnectionCredentials  # noqa: F401

__all__ = ["ClientOptions", "ConnectionCredentials"]
