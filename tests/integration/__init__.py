# Integration Tests
"""
Integration tests run complete workflows against the local filesystem.

Principle: Test behavior, not implementation.
"""
