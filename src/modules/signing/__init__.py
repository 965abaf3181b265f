"""
Signature capture (draw / type / upload) and compositing of the captured
image into the fields of the original PDF.
"""
