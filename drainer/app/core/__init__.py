"""Shared core utilities for the drainer."""
from __future__ import annotations

SERVICE_NAME = "drainer"
