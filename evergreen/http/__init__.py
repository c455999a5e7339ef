"""
HTTP surface over the commerce services.
"""

from evergreen.http._app import UserId, create_app, reply

__all__ = ("UserId", "create_app", "reply")
