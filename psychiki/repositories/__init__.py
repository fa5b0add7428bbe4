"""
Persistence adapters.

Services depend on the repository rather than touching SQLAlchemy sessions.
"""
