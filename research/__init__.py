"""
Research books, legal information, keyword search and sharing.
"""
