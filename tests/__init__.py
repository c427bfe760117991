"""
Test suite for n3xB

Contains:
- tests/conftest.py : in-memory relay double and shared fixtures
- tests/unit/       : Unit tests for individual modules
"""
