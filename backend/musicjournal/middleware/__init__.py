# Middleware package init
"""
Music Journal Backend — Middleware Package
============================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [CORS] → Route Handler

    Request ID runs first so the logging middleware and every log line
    emitted by the store during the request carry the same id.
"""
