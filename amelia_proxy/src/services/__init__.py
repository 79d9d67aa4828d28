"""Business logic services.

This package contains the proxy service, its URL helpers and the error
taxonomy translated into JSON envelopes by the API layer.
"""
