"""
Core business logic for training programs.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
or any infrastructure concerns. Persistence is reached only through the
PersistenceGateway protocol, so the engine can be tested in isolation.
"""
