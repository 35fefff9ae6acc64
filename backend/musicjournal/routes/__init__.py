# Routes package init
"""
Music Journal Backend — API Routes Package
============================================

Route Inventory:
    - auth.py:     POST /auth/sync                 (create local user on login)
    - tracks.py:   POST /api/track, GET /api/track/{id}
    - journal.py:  POST/GET /api/journal, GET /api/journal/{track_id},
                   PUT/DELETE /api/journal/{entry_id}
    - health.py:   GET  /health

Design Principle:
    Routes are THIN. They resolve the caller, call the store, and shape
    the response. They never build SQL and never take an owner id from
    the request body.
"""
