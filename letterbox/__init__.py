"""
Letterbox Application Package.

Two-party letter exchange: text letters with an optional voice clip and
file attachments kept in blob storage, read through signed URLs.
"""

__version__ = "1.0.0"
__description__ = "Letter composition, delivery and read-state API"
