"""wordbank/ -- Lists, memberships, join requests and words.

Layer rule: wordbank/ may import from core/ and auth/models.py (for the User
identity type). It does NOT import from api/.
"""
