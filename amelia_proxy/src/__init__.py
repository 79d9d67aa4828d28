"""FastAPI service proxying browser calls to the WP Amelia API.

This package provides the proxy endpoint that injects the Amelia API key
server side and normalizes CORS for browser clients.
"""

__version__ = "1.0.0"
