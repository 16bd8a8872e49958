from .local_instances import build_connection_string, discover_local_instances

__all__ = ["build_connection_string", "discover_local_instances"]
