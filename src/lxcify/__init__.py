"""Provision unprivileged LXC containers that run a single desktop application."""

__version__ = "0.1.0"
