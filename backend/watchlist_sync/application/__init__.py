"""
Application layer: the sync engine and its collaborators.

Depends on `domain` and on the ports in `application.ports`; concrete stores
live in `infrastructure`.
"""
