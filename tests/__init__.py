"""
xray-bridge - Test Suite Package.

Pytest-based unit tests; every HTTP interaction runs against a fake session.
"""
