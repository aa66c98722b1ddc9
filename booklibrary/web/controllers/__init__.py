"""
Controllers served by the web host.

Every module in this package is scanned at startup; ``ApiController``
subclasses whose names end in ``Controller`` are registered.
"""
