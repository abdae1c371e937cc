"""
Error taxonomy root.

Concrete errors live beside the component that raises them
(storage interface, reminder scheduler, security gate, bridge, validator).
They all share this base so the dispatcher can classify them in one place.
"""


class TijaratiError(Exception):
    """Base exception for every classified failure in the host core."""
    pass
