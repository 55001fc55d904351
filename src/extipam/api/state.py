"""
Shared state accessors for API modules.

The app factory sets the adapter reference; endpoint modules read it via
the getter.
"""

_adapter = None


def set_adapter(adapter):
    global _adapter
    _adapter = adapter


def get_adapter():
    """Get the IPAM adapter instance."""
    if _adapter is None:
        raise RuntimeError("IPAM adapter has not been initialized")
    return _adapter
