"""Test infrastructure - fake tools and helpers.

This package contains test support code, NOT actual tests.
"""
