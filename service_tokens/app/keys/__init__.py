"""
Key resolver adapter.

Normalizes literal keys and asynchronous key lookups into key material
before verification continues.
"""
