"""
Claims package.

- injector: computes registered claims and the header when signing.
- validator: ordered, fail-fast checks of registered claims when verifying.
"""
