"""Domain layer — name rules, pricing, records, and typed errors.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
