"""Shared test fixtures: in-memory catalogs and seeded log databases."""
