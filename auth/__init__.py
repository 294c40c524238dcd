"""auth/ -- Authentication and hierarchical authorization for CronoCodex.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/, core/ or hr/.
api/ and hr/ import from auth/, not the other way around.
"""
