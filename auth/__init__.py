"""auth/ -- Authentication package for authstarter.

Token codec, password hasher, user/session stores, the request gate and the
auth service.

Layer rule: auth/ may import from core/ and third-party libraries. It does NOT
import from api/. api/ imports from auth/, not the other way around.
"""
