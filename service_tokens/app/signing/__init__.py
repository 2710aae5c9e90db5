"""
Signing package.

Wraps the JWS primitive (PyJWT) and holds the algorithm policy that ties
algorithms to key kinds. Key material is parsed with cryptography; no key is
ever inferred from string prefixes.
"""
