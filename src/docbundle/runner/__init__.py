"""
CLI runner module.

Provides commands:
- init-config: Write a default config file
- otp / login: Obtain a session token
- tags: Tag suggestions
- search: List matching documents
- preview: Classify paths for preview
- download: Fetch one document
- export: Search and export all matches as a ZIP
- upload: Upload a document with metadata
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
