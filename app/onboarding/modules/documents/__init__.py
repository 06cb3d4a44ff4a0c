"""
Contract documents and their signatures.

A document is signable once it has content (rich text, an uploaded signed
copy, or a signed-elsewhere marker) and at least one signature row is still
open. Completeness is always recomputed from the signature rows.
"""
