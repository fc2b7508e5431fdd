"""tplgen — directory-driven template generator."""

__version__ = "0.1.0"
