# Middleware package init
"""
NotPasteBin Frontend — Middleware Package
===========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [In-Flight] → [Request ID] → [Deadline] → [Logging] → [GZip] → Route Handler

    1. In-Flight: counts the request for graceful shutdown, sees cancellations
    2. Request ID: correlation ID for every log line of this request
    3. Deadline: absolute deadline shared with the outbound RPC
    4. Logging: access line with status and duration
"""
