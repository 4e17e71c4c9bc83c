"""Retail paperwork scan processing.

Splits multi-page scans into logical documents using coversheet barcodes,
corrects page orientation and skew, runs Tesseract OCR through a bounded
worker pool, and extracts typed fields from the recognized text.
"""
