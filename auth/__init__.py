"""auth/ -- Authentication package for WordLists.

Token issuance and verification, the revocation ledger, password hashing and
the request identity resolver.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or wordbank/.
api/ imports from auth/, not the other way around.
"""
