import io
import logging
import re
import zipfile
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import fitz  # PyMuPDF
from bs4 import BeautifulSoup
from docx import Document as DocxDocument
from openpyxl import load_workbook
from pptx import Presentation

from docsearch.core.parse.metadata_mapper import NATIVE_DATE_FORMAT
from docsearch.exceptions import ExtractionError

logger = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PPTX_MIME = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
HTML_MIMES = {"text/html", "application/xhtml+xml"}
EMPTY_MIMES = {"application/x-empty", "inode/x-empty"}
TEXT_LIKE_MIMES = {"application/json", "application/xml", "application/javascript", "application/csv"}

# MIME type -> PyMuPDF filetype hint
FITZ_TYPES = {
    "application/pdf": "pdf",
    "application/epub+zip": "epub",
    "application/vnd.ms-xpsdocument": "xps",
    "application/oxps": "xps",
    "application/x-mobipocket-ebook": "mobi",
    "application/x-fictionbook+xml": "fb2",
    "application/vnd.comicbook+zip": "cbz",
}

PDF_DATE_RE = re.compile(
    r"^D:(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?(?:(Z)|([+-])(\d{2})'?(\d{2})?'?)?"
)


def detect_content_type(data: bytes) -> str:
    """MIME type sniffed from the bytes themselves, never from the filename."""
    import magic

    mime = magic.from_buffer(data, mime=True) or "application/octet-stream"
    if mime in ("application/zip", "application/octet-stream"):
        mime = _refine_zip_type(data) or mime
    return mime


def _refine_zip_type(data: bytes) -> Optional[str]:
    if not zipfile.is_zipfile(io.BytesIO(data)):
        return None
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        names = set(archive.namelist())
        if "word/document.xml" in names:
            return DOCX_MIME
        if "xl/workbook.xml" in names:
            return XLSX_MIME
        if "ppt/presentation.xml" in names:
            return PPTX_MIME
        if "mimetype" in names:
            declared = archive.read("mimetype").decode("ascii", errors="ignore").strip()
            if declared in FITZ_TYPES:
                return declared
    return None


def pdf_date_to_native(value: str) -> Optional[str]:
    """Converts a PDF 'D:YYYYMMDDHHmmSS+HH'mm'' stamp to the native UTC layout."""
    match = PDF_DATE_RE.match(value or "")
    if not match:
        return None
    year, month, day, hour, minute, second, zulu, sign, off_h, off_m = match.groups()
    stamp = datetime(
        int(year), int(month or 1), int(day or 1),
        int(hour or 0), int(minute or 0), int(second or 0),
    )
    if sign:
        offset = timedelta(hours=int(off_h), minutes=int(off_m or 0))
        stamp = stamp - offset if sign == "+" else stamp + offset
    return stamp.replace(tzinfo=timezone.utc).strftime(NATIVE_DATE_FORMAT)


def _datetime_to_native(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(NATIVE_DATE_FORMAT)


def _core_properties(props) -> Dict[str, Optional[str]]:
    """OOXML core properties shared by python-docx and python-pptx."""
    return {
        "dc:creator": props.author,
        "dc:title": props.title,
        "dc:subject": props.subject,
        "meta:keyword": props.keywords,
        "dcterms:created": _datetime_to_native(props.created),
        "dcterms:modified": _datetime_to_native(props.modified),
    }


class ContentExtractor:
    """
    Format-agnostic text and metadata extraction.
    Format is detected from content:
    - PDF / EPUB / XPS / MOBI / FB2 / CBZ via PyMuPDF
    - DOCX via python-docx
    - XLSX via openpyxl, PPTX via python-pptx
    - HTML via BeautifulSoup
    - any text/* as UTF-8
    Metadata keys follow the Dublin Core style names the MetadataMapper reads.
    """

    def extract_text(self, data: bytes) -> str:
        mime = detect_content_type(data)
        logger.debug(f"Detected content type {mime} ({len(data)} bytes)")
        try:
            if mime in EMPTY_MIMES:
                return ""
            if mime in FITZ_TYPES:
                return self._fitz_text(data, FITZ_TYPES[mime])
            if mime == DOCX_MIME:
                return self._docx_text(data)
            if mime == XLSX_MIME:
                return self._xlsx_text(data)
            if mime == PPTX_MIME:
                return self._pptx_text(data)
            if mime in HTML_MIMES:
                return self._html_text(data)
            if mime.startswith("text/") or mime in TEXT_LIKE_MIMES:
                return self._decode(data)
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"Failed to extract text from {mime} content: {e}") from e
        raise ExtractionError(f"Unsupported content type: {mime}")

    def extract_metadata(self, data: bytes) -> Dict[str, str]:
        """Best-effort: returns an empty mapping when anything goes wrong."""
        try:
            mime = detect_content_type(data)
            metadata = {"Content-Type": mime}
            if mime in FITZ_TYPES:
                metadata.update(self._fitz_metadata(data, FITZ_TYPES[mime]))
            elif mime == DOCX_MIME:
                metadata.update(self._docx_metadata(data))
            elif mime == XLSX_MIME:
                metadata.update(self._xlsx_metadata(data))
            elif mime == PPTX_MIME:
                metadata.update(self._pptx_metadata(data))
            elif mime in HTML_MIMES:
                metadata.update(self._html_metadata(data))
            return {k: v for k, v in metadata.items() if v}
        except Exception as e:
            logger.warning(f"Metadata extraction failed: {e}")
            return {}

    # --- PyMuPDF -----------------------------------------------------------

    def _fitz_text(self, data: bytes, filetype: str) -> str:
        doc = fitz.open(stream=data, filetype=filetype)
        try:
            return "\n".join(page.get_text() for page in doc)
        finally:
            doc.close()

    def _fitz_metadata(self, data: bytes, filetype: str) -> Dict[str, str]:
        doc = fitz.open(stream=data, filetype=filetype)
        try:
            meta = doc.metadata or {}
            return {
                "dc:creator": meta.get("author"),
                "dc:title": meta.get("title"),
                "dc:subject": meta.get("subject"),
                "Keywords": meta.get("keywords"),
                "producer": meta.get("producer"),
                "Application-Name": meta.get("creator"),
                "dcterms:created": pdf_date_to_native(meta.get("creationDate")),
                "dcterms:modified": pdf_date_to_native(meta.get("modDate")),
                "xmpTPg:NPages": str(doc.page_count),
            }
        finally:
            doc.close()

    # --- DOCX --------------------------------------------------------------

    def _docx_text(self, data: bytes) -> str:
        document = DocxDocument(io.BytesIO(data))
        lines = [p.text for p in document.paragraphs]
        for table in document.tables:
            for row in table.rows:
                lines.append(" | ".join(cell.text for cell in row.cells))
        return "\n".join(lines)

    def _docx_metadata(self, data: bytes) -> Dict[str, str]:
        return _core_properties(DocxDocument(io.BytesIO(data)).core_properties)

    # --- XLSX --------------------------------------------------------------

    def _xlsx_text(self, data: bytes) -> str:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        try:
            lines = []
            for sheet in workbook.worksheets:
                lines.append(sheet.title)
                for row in sheet.iter_rows(values_only=True):
                    cells = [str(value) for value in row if value is not None]
                    if cells:
                        lines.append(" | ".join(cells))
            return "\n".join(lines)
        finally:
            workbook.close()

    def _xlsx_metadata(self, data: bytes) -> Dict[str, str]:
        workbook = load_workbook(io.BytesIO(data), read_only=True)
        try:
            props = workbook.properties
            return {
                "dc:creator": props.creator,
                "dc:title": props.title,
                "dc:subject": props.subject,
                "meta:keyword": props.keywords,
                "dcterms:created": _datetime_to_native(props.created),
                "dcterms:modified": _datetime_to_native(props.modified),
            }
        finally:
            workbook.close()

    # --- PPTX --------------------------------------------------------------

    def _pptx_text(self, data: bytes) -> str:
        presentation = Presentation(io.BytesIO(data))
        lines = []
        for slide in presentation.slides:
            for shape in slide.shapes:
                if shape.has_text_frame:
                    lines.append(shape.text_frame.text)
        return "\n".join(lines)

    def _pptx_metadata(self, data: bytes) -> Dict[str, str]:
        presentation = Presentation(io.BytesIO(data))
        metadata = _core_properties(presentation.core_properties)
        metadata["Page-Count"] = str(len(presentation.slides))
        return metadata

    # --- HTML --------------------------------------------------------------

    def _html_text(self, data: bytes) -> str:
        soup = BeautifulSoup(data, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        return soup.get_text("\n", strip=True)

    def _html_metadata(self, data: bytes) -> Dict[str, str]:
        soup = BeautifulSoup(data, "html.parser")
        metadata = {"dc:title": soup.title.get_text(strip=True) if soup.title else None}
        names = {"author": "Author", "keywords": "Keywords", "generator": "Application-Name"}
        for tag in soup.find_all("meta"):
            name = (tag.get("name") or "").lower()
            if name in names and tag.get("content"):
                metadata[names[name]] = tag["content"]
        return metadata

    # --- Plain text ----------------------------------------------------------

    def _decode(self, data: bytes) -> str:
        return data.decode("utf-8-sig", errors="replace")
