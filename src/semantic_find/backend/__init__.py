"""Embedding backend: the model host and its HTTP service."""

from .host import ModelHost
from .server import create_app, run_server

__all__ = [
    "ModelHost",
    "create_app",
    "run_server",
]
