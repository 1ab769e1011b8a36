"""
mill_api -- FastAPI boundary over the mill kernel and modules.

Translates HTTP requests into service calls and typed service errors into
``{"success": false, "code", "message"}`` responses.
"""

from mill_api.app import create_app

__all__ = ["create_app"]
