"""
distpack - build Arch and RPM packages of a pre-built application inside
containers, with runtime and flag fallback.
"""

__version__ = "0.1.0"
