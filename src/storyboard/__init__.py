"""
Storyboard

User stories and their acceptance criteria, stored in PostgreSQL.
"""
