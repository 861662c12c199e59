from .state import InMemoryProgressLedger, InMemorySessionStateManager

__all__ = ["InMemoryProgressLedger", "InMemorySessionStateManager"]
