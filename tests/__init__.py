"""
Tests for cargo-verify.

Test suite covering:
- Unit tests for output classification, symbols, options and helpers
- Integration tests for the build pipeline, backends and driver
"""

__all__ = []
