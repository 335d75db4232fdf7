"""
connhub: resolve logical connection names into live backend connections.

Configurations come from a Valkey-backed secret cache, AWS Secrets Manager or
local declarations; connectors cover MySQL, PostgreSQL, SQL Server,
Redis/Valkey and DynamoDB.
"""

__version__ = "0.1.0"
