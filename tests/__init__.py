"""Test suite for DolarPulse.

This package contains hermetic tests following the pytest framework.
Test modules mirror the dolarpulse/ package for discoverability.

Testing Philosophy:
    - Use pytest-mock and in-process fakes for browser isolation
    - Focus coverage on aggregation, history eviction and fan-out ordering
    - Avoid external dependencies - all I/O should be mocked
"""
