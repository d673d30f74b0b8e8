from . import corpus

__all__ = [
    "corpus",
]
