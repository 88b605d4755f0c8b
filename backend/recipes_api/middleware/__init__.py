# Middleware package init
"""
Recipes API - Middleware Package
==================================

Middleware Chain (request direction):
    Request → [Request ID] → [Logging] → [Security Headers] → [GZip] → [CORS] → Route Handler

The request id is set before the access log line is written, so every log
entry for a request carries the same id.
"""
