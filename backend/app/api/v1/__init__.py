from app.api.v1 import appointments

__all__ = [
    "appointments",
]
