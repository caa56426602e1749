# polystore Test Suite
"""
Test suite for polystore.

Unit tests exercise each backend through the storage contract against a
temporary directory or an in-memory client. Integration tests run the
zipper against real files on disk.
"""
