"""
RouteDesk Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID: correlation id for every log line of the request
    2. Logging: method, path, status, duration (tagged with the request id)
    3. CORS: answers browser preflights and adds the allow-* headers

    Responses travel back through the same chain in reverse, which is how the
    X-Request-ID header and the measured duration reach the client and the log.
"""
