"""Test fixtures and seed data."""
