"""
Types, constants and validators shared by the API, the import pipeline and
the maintenance scripts.
"""
