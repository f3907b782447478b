"""Database models."""

from medibook.models.appointments import appointments
from medibook.models.doctors import doctors

__all__ = [
    "appointments",
    "doctors",
]
