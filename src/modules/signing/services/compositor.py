"""
Signature compositor.

Stamps one signature asset into every field of the original document and
returns the bytes of a new signed PDF. The original bytes are never modified.
Field rects are fractions of the page with a top-left origin; PDF user space
has a bottom-left origin, hence the flip on y.
"""
import logging
from typing import Iterable, List

from modules.common.errors import CompositingError
from modules.editor.models.geometry import Rect, Size, SignatureField
from modules.signing.models.signature_asset import SignatureAsset
from modules.signing.services.pdf_document import PdfDocumentModel

logger = logging.getLogger(__name__)


def field_to_pdf_rect(field: SignatureField, page_size: Size) -> Rect:
    """Fractional top-left rect -> PDF points, bottom-left origin"""
    return Rect(
        x=page_size.width * field.x,
        y=page_size.height * (1 - field.y - field.height),
        width=page_size.width * field.width,
        height=page_size.height * field.height,
    )


class SignatureCompositor:

    def composite(self, original: bytes, asset: SignatureAsset, fields: Iterable[SignatureField]) -> bytes:
        """
        Draws the asset into every field and serializes a new document.

        Any failure aborts the whole operation with CompositingError; nothing
        partial is ever returned.
        """
        fields: List[SignatureField] = list(fields)
        if not fields:
            raise CompositingError("Document has no signature fields")

        try:
            document = PdfDocumentModel.load(original)
        except Exception as exc:
            raise CompositingError(f"Cannot read the original document: {exc}") from exc

        try:
            # embedded once, drawn into every field
            image = document.embed_image(asset.data)
            for field in fields:
                if not 0 <= field.page < document.page_count:
                    raise CompositingError(
                        f"Field {field.id} targets page {field.page}, "
                        f"document has {document.page_count} pages"
                    )
                rect = field_to_pdf_rect(field, document.page_size(field.page))
                document.draw_image(field.page, image, rect)
            signed = document.save()
        except CompositingError:
            raise
        except Exception as exc:
            logger.error("Compositing failed: %s", exc, exc_info=True)
            raise CompositingError(f"Could not stamp the signature: {exc}") from exc

        logger.info(
            "Stamped %s signature into %d field(s) on %d page(s)",
            asset.mode.value, len(fields), len({f.page for f in fields}),
        )
        return signed
