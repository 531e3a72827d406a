"""Shared library for the error logs service: config, database, redis, models."""
