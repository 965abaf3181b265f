from .coordinates import clamp, to_fraction, to_pixel, rotate_fraction_rect, unrotate_fraction_point
from .field_editor import FieldEditor, Handle, PointerEventSource, PlacementAnchor
from .render_pipeline import RenderPipelineController, RenderTrigger, RenderState, PdfiumRasterizer
from .page_preview import PagePreview, render_page_preview

__all__ = [
    'clamp', 'to_fraction', 'to_pixel', 'rotate_fraction_rect', 'unrotate_fraction_point',
    'FieldEditor', 'Handle', 'PointerEventSource', 'PlacementAnchor',
    'RenderPipelineController', 'RenderTrigger', 'RenderState', 'PdfiumRasterizer',
    'PagePreview', 'render_page_preview',
]
