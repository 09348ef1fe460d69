"""
utils package for flowlyt - CI/CD pipeline analyzer

Helpers for position-aware YAML loading, action reference parsing and the
known-actions database.
"""
