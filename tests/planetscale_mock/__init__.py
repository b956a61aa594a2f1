"""PlanetScale API Mock for reconciler testing.

This package provides an in-memory implementation of the DatabaseApi
contract so reconciliation passes can run without network access.

Key Features:
- In-memory databases and branches per organization
- Provisioning simulation (databases stay "pending" for N polls)
- Provider-side validation (create rejects settings fields, branch
  creation rejected while provisioning, default branch must exist)
- Ordered call log for asserting on call order and payloads
- Error injection for failure scenarios
- Fake clock for readiness waits without real sleeping

Usage:
    from planetscale_mock import FakeClock, MockPlanetScaleApi

    api = MockPlanetScaleApi(provisioning_polls=2)
    clock = FakeClock()
    reconciler = DatabaseReconciler(api, config, sleep=clock.sleep, clock=clock.now)
    await reconciler.reconcile("create", "db", spec)

    assert api.method_names()[0] == "get_database"
"""

from .api import MockCall, MockPlanetScaleApi
from .clock import FakeClock
from .state import MockBranch, MockDatabase

__all__ = [
    "FakeClock",
    "MockBranch",
    "MockCall",
    "MockDatabase",
    "MockPlanetScaleApi",
]
