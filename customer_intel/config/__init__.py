"""
Configuration System

Configuration Priority (highest to lowest):
    1. Programmatic (passed to IntelConfig())
    2. Environment variables (CUSTOMER_INTEL_* prefix, OPENAI_API_KEY)
    3. Built-in defaults

A TOML file can be loaded explicitly with IntelConfig.from_file().
"""

from customer_intel.config.settings import IntelConfig

__all__ = ["IntelConfig"]
