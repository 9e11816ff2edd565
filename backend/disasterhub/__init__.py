"""
DisasterHub Backend
=====================

Disaster reporting and volunteer coordination API: users report
disasters, volunteers accept and resolve them, admins manage accounts,
and everyone involved is notified along the way.

Layers:
    ┌──────────────────────────────────────────┐
    │  Routes (disasterhub.routes)             │  HTTP: parse, delegate, envelope
    ├──────────────────────────────────────────┤
    │  Services (disasterhub.services)         │  lifecycle, policy, fan-out, accounts
    ├──────────────────────────────────────────┤
    │  Models & Schemas                        │  SQLAlchemy ORM + Pydantic contracts
    ├──────────────────────────────────────────┤
    │  Database (disasterhub.database)         │  async engine and sessions
    └──────────────────────────────────────────┘
"""

__version__ = "1.0.0"
