"""Implementations of the collaborators used by the account flows."""
