"""
Accounts, sessions and bearer-token authentication.
"""
