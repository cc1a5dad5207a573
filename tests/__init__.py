"""
Test suite for couchslacker.

This package contains tests for all couchslacker components:
- Unit tests for metadata, comparison and reconciliation
- HTTP-level tests of the CouchDB client against mocked responses
- CLI tests
"""
