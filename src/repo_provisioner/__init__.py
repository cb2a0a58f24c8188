"""
Template-based repository provisioning.

Creates a repository from a template, optionally protects its default branch
once it exists, and deletes repositories idempotently.
"""

__version__ = "0.1.0"
