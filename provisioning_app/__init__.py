# provisioning_app/__init__.py
"""
Parent Moodle account provisioning package.
"""
