"""
FastAPI RESTful API for the LegalGen research system.

This module provides a REST API for:
- Research book and legal information management
- Keyword search over books and legal information
- Sharing research books between users
- Account registration, login and password reset
"""
