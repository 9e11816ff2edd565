"""
DisasterHub Backend — Middleware Package
==========================================

Cross-cutting concerns applied to every HTTP request.

Middleware Chain:
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Rate Limit first: abusive clients are rejected before any work
    2. Request ID: correlation id for logs and error bodies
    3. Logging: method, path, status and duration, tagged with the request id

WebSocket connections (/api/ws/notifications) bypass these; Starlette's
BaseHTTPMiddleware only wraps HTTP scopes.
"""
