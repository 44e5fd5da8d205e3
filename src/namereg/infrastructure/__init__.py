"""Infrastructure layer — registry stores, SQLite database, fee ledgers.

This layer depends on stdlib, SQLAlchemy, and the domain layer's value
types. It must never import from services, commands, or output.
"""
