"""TCP ping: round trip time measurement split into A->B and B->A segments."""

__version__ = '1.0.0'
