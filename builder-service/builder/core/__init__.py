"""
Core infrastructure - logging setup.
"""
