"""Banking domain package.

This package contains the domain model for external banking providers:
connections, accounts, raw provider records and the provider error taxonomy.
"""
