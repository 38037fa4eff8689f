"""
SiteGate Services
=================

Services for the SiteGate visitor management platform.

Services:
- visitor: Visit check-in, access decisions, escort escalation and evacuation
"""

__all__ = [
    "visitor",
]
