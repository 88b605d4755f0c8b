# Schemas package init
"""
Recipes API - Pydantic Schemas
================================

API contracts, kept separate from the ORM models so the wire format (no
image asset id, joined category, region exposed as "country") can differ
from the table layout.
"""
