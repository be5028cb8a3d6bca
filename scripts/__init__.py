"""
One-off maintenance and migration scripts. Each is runnable on its own.
"""
