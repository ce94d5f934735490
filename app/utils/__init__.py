"""Utility modules for the FastAPI application."""

from .tasks import TaskSupervisor

__all__ = ["TaskSupervisor"]
