"""
Shared utilities: structured logging, rate limiting, retries.
"""
