"""Shared fakes and sample data for the test suite."""
