from .bases import CanonicalModel, FrozenModel

__all__ = [
    "CanonicalModel",
    "FrozenModel",
]
