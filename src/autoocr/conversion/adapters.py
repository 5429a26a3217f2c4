from .interfaces import ConverterGateway


class DoclingConverter(ConverterGateway):
    """Docling-backed converter, built once at startup.

    Constructing it loads the OCR and layout models, so a missing or broken
    docling install surfaces before the service starts accepting uploads.
    """

    def __init__(self) -> None:
        from docling.document_converter import DocumentConverter  # type: ignore

        self._converter = DocumentConverter()

    def convert_to_markdown(self, input_uri: str) -> str:
        result = self._converter.convert(input_uri)
        # older releases return the document itself or expose it via to_doc()
        try:
            doc = result.document  # type: ignore[attr-defined]
        except AttributeError:
            to_doc = getattr(result, "to_doc", None)
            doc = to_doc() if callable(to_doc) else result
        for m in ("export_to_markdown", "to_markdown", "as_markdown"):
            fn = getattr(doc, m, None)
            if callable(fn):
                return fn()
        raise RuntimeError(f"{type(doc).__name__} from {input_uri} has no Markdown export")
