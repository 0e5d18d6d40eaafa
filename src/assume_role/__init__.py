"""Assume AWS IAM roles with cached temporary credentials and MFA fallback."""

__version__ = "0.1.0"
