"""
Infrastructure layer: concrete remote/local stores, identity sources and
the factories that wire them into an engine.
"""

__all__ = [
    "factory",
    "identity",
    "local",
    "remote",
]
