"""Application bootstrap helpers for the Studydeck review engine."""

from .runtime import ReviewRuntime, bootstrap
from .settings import AppSettings

__all__ = ["bootstrap", "AppSettings", "ReviewRuntime"]
