"""Test suite for the mapperkit package.

This package contains unit and integration tests validating
property introspection, parameter naming, mapper document loading
and deferred resolution of fragments declared out of order.
"""
