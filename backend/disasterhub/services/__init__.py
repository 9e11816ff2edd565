# Services package init
"""
DisasterHub Backend — Services Layer
======================================

Business rules between the routes (HTTP) and the database.

Service Inventory:
    - policy:               (operation, role) access table, visibility
                            clause, status state machine
    - DisasterService:      disaster record lifecycle and searches
    - NotificationService:  event fan-out and the recipient inbox
    - RealtimeHub:          in-process push channel per user
    - AuthService:          accounts, credentials, admin management
    - FileService:          report image validation, storage and cleanup

Services receive the request's AsyncSession as an argument and hold no
per-request state; each module exposes a singleton instance.
"""
