"""Nebula: capability-ordered Pulumi module orchestration."""

__version__ = "0.1.0"
