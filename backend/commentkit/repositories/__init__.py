"""Stateless repositories: static async methods over an AsyncSession.

Callers own transaction boundaries; repositories flush, never commit.
"""
