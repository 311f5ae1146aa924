# Routes package init
"""
NotPasteBin Frontend — Routes Package
=======================================

Route Inventory:
    - pages.py:   /, /note/*, /edit/*, /create, /update/*, /delete/*, /style.css
    - health.py:  GET /health

Design Principle:
    Routes are THIN: parse the path and form, call NoteService, return a
    page or a redirect. Status codes for failures come from the exception
    handlers in main.py.
"""
