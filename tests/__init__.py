"""
SiteGate Test Suite
===================

Test organization:
- tests/unit/              - Shared library tests (auth, settings)
- tests/services/visitor/  - Workflow, store and API tests over the in-memory store

Run tests:
    pytest                          # All tests
    pytest tests/unit               # Unit tests only
    pytest --cov=services --cov=shared
"""
