"""
Geolock Web Framework Integrations

Supported frameworks:
- FastAPI: create_app() REST service over MessageService
"""

from geolock.integrations.fastapi import create_app

__all__ = [
    "create_app",
]
