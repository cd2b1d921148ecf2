"""
Gateway implementations for Snowflake.

Gateways translate between engine documents and database rows.
"""

from .documents import SnowflakeConfig, SnowflakeConnection, SnowflakeDocumentGateway

__all__ = ["SnowflakeConfig", "SnowflakeConnection", "SnowflakeDocumentGateway"]
