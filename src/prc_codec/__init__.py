"""
prc_codec — EESSI Provisional Replacement Certificate encoding pipeline.

Validates PRC records, signs them as compact JWTs, compresses and
Base45-encodes the token, and sizes the result for a QR code. The
inverse path decodes, inflates and verifies a scanned string back into
the original record.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
