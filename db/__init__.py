"""
db/ - Database Layer
====================
PostgreSQL connection pool, the transaction helper and schema creation.
This layer is the lowest in the architecture and imports no other layer.
"""
