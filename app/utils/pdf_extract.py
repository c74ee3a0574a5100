import io
from typing import List

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from app.core.errors import PDFProcessingError


def extract_pages_text(data: bytes) -> List[str]:
    """
    Extrait le texte de chaque page d'un PDF (liste indexée page-1).
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        return [(page.extract_text() or "") for page in reader.pages]
    except (PdfReadError, ValueError, KeyError) as e:
        raise PDFProcessingError(f"PDF extraction failed: {e}") from e


def count_pages(data: bytes) -> int:
    try:
        return len(PdfReader(io.BytesIO(data)).pages)
    except (PdfReadError, ValueError, KeyError):
        return 0
