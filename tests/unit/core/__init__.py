"""
Core Component Unit Tests

ConfigurationManager and the shared utilities in util.py.
"""
