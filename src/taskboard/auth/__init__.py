"""
Users and credentials.

Components:
- user_store.py: SQLite user directory with passlib password hashes
"""
