"""
High-level use cases for the Psychiki API.

Each service module orchestrates repositories/adapters to implement business
rules (register, verify a code, sync steps, rank users). Routers call these
services instead of touching the database directly.
"""
