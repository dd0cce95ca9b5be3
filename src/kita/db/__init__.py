"""Database package: declarative base and ORM models."""
