"""
PDF intake for contractor contracts.

Validates uploaded bytes, pulls text out with pdfplumber (falling back to an
OCR hook for image-only scans), and flags documents that look already signed.
"""
