"""Utilities for building the operation registry of the server."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from ..config import DEFAULT_PROMPTS_DIR
from ..prompt_loader import load_prompts
from ..registry import OperationRegistry
from .routes.items import register_test_item_tools
from .routes.launches import register_launch_tools
from .routes.prompts import register_prompts

__all__ = ["create_registry"]


def create_registry(prompts_dir: Optional[Union[str, Path]] = None) -> OperationRegistry:
    """Create the frozen registry of built-in tools and YAML prompts."""
    registry = OperationRegistry()

    register_launch_tools(registry)
    register_test_item_tools(registry)
    register_prompts(registry, load_prompts(prompts_dir or DEFAULT_PROMPTS_DIR))

    return registry.freeze()
