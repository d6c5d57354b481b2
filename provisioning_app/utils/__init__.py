# provisioning_app/utils/__init__.py
"""
Shared helpers for logging setup and comment timestamps.
"""
