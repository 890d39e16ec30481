"""Authentication and authorization.

Accounts log in with username/password and receive JWT access/refresh
tokens. Every authenticated request re-reads the account row, so an
admin flag revoked a second ago is already in effect.
"""
