from .in_memory_local_store import InMemoryLocalStore
from .json_file_local_store import JsonFileLocalStore

__all__ = ["InMemoryLocalStore", "JsonFileLocalStore"]
