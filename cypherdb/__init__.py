"""
CypherDB: In-Memory Key-Value Store

A small in-memory key-value database served over a line-oriented
TCP text protocol, built with Python asyncio and persisted to a
JSON snapshot on shutdown.
"""

__version__ = "1.0.0"
