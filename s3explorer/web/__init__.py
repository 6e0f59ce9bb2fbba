"""
Web module - Flask application factory and HTTP routes.
"""

from s3explorer.web.app import create_app, main

__all__ = ["create_app", "main"]
