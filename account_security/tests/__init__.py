"""Tests for :mod:`account_security`."""
