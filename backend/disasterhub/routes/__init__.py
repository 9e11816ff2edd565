# Routes package init
"""
DisasterHub Backend — API Routes Package
==========================================

Every router is mounted under settings.api_prefix ("/api").

Route Inventory:
    - auth.py:           /api/auth/...            accounts and administration
    - disasters.py:      /api/disasters/...       report lifecycle and search
    - notifications.py:  /api/notifications/...   the caller's inbox
    - files.py:          /api/files/{path}        stored report images
    - realtime.py:       /api/ws/notifications    WebSocket push channel
    - health.py:         /api/health              service health check

Routes stay thin: extract request data, call a service, wrap the result in
its response envelope. Business rules live in disasterhub.services.
"""
