"""
Core utilities shared across the Psychiki API.

This package hosts configuration, logging, the error taxonomy, the clock,
password hashing, the SMTP adapter and the rate limiter. Services depend on
these primitives instead of importing FastAPI or storage details directly.
"""
