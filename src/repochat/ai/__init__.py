"""AI client, analytics and the repository agent."""

from .client import AIClient, ClientSettings
from .utils.tokens import ApproxByteCounter, TokenCounterRegistry

__all__ = ["AIClient", "ClientSettings", "TokenCounterRegistry", "ApproxByteCounter"]
