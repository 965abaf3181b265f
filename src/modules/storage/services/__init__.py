from .object_store import ObjectStore, LocalObjectStore, get_object_store
from .paths import sanitize_filename, original_object_path, signed_object_path

__all__ = [
    'ObjectStore', 'LocalObjectStore', 'get_object_store',
    'sanitize_filename', 'original_object_path', 'signed_object_path',
]
