"""Publish local text documents to GitHub and GitLab repositories."""

__version__ = "0.1.0"
