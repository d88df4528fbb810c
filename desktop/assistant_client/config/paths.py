"""Filesystem helpers for the assistant client."""

from __future__ import annotations

from pathlib import Path


def project_root() -> Path:
    """Return the repository root."""
    return Path(__file__).resolve().parents[3]


def client_root() -> Path:
    """Return the root folder of the assistant client."""
    return project_root() / "desktop" / "assistant_client"


def config_dir() -> Path:
    """Directory storing local configuration."""
    root = client_root() / "config"
    root.mkdir(parents=True, exist_ok=True)
    return root
