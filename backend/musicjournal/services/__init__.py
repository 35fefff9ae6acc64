# Services package init
"""
Music Journal Backend — Services Layer
========================================

What:  Business logic between routes (HTTP) and the database (persistence).
Why:   Routes handle HTTP; services own storage, encryption, and identity rules.

Service Inventory:
    - JournalStore: the only component that reads or writes the database
    - IdentityService: find-or-create of local users after Spotify login
    - SpotifyAuthService: resolves an access token to a Spotify profile
"""
