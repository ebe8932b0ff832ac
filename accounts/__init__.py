"""
User accounts: registration, authentication, password reset and profiles.
"""
