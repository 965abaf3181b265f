from .geometry import Point, Size, Rect, SignatureField

__all__ = ['Point', 'Size', 'Rect', 'SignatureField']
