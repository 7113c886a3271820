"""
Policy Generation Module

Compiles resolved peers into per-session filter policy and renders it as
BIRD configuration.
"""

from .policy_compiler import compile_sessions, split_by_family
from .renderer import PolicyRenderer

__all__ = ["compile_sessions", "split_by_family", "PolicyRenderer"]
