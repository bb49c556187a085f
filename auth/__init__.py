"""auth/ -- Token lifecycle and request authentication for the Todo API.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or todos/.
api/ imports from auth/, not the other way around.
"""
