# Services package init
"""
NotPasteBin Frontend — Services Layer
=======================================

What:  Everything between the HTTP routes and the note backend.

Service Inventory:
    - NoteBackend (abstract): the four-RPC contract of the note backend
    - GrpcNoteBackend: gRPC implementation with deadlines and circuit breaker
    - NoteService: per-route adapter (capability redirects, error policy)
    - PageRenderer: Jinja2 page template
"""
