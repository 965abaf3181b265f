"""
Editing surface for signature fields: fractional geometry, page rendering
and the placement/drag/resize gesture machines. UI toolkit agnostic.
"""
