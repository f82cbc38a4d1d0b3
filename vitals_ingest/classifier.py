"""File format classification."""

from pathlib import PurePath

from .schema import SourceFormat

EXTENSIONS = {
    ".csv": SourceFormat.TABULAR,
    ".json": SourceFormat.TREE,
    ".xml": SourceFormat.HIERARCHICAL,
}


def classify(file_name: str, head: str | None = None) -> SourceFormat:
    """
    Pick a parsing strategy for a file.

    Classification is by extension. Only a file without any extension
    falls back to sniffing `head`, the first characters of its content.

    Args:
        file_name: Name or path of the file
        head: Optional leading text of the file

    Returns:
        SourceFormat, UNSUPPORTED when nothing matches
    """
    suffix = PurePath(file_name).suffix.lower()
    if suffix:
        return EXTENSIONS.get(suffix, SourceFormat.UNSUPPORTED)

    if head is None:
        return SourceFormat.UNSUPPORTED
    return _sniff(head)


def _sniff(head: str) -> SourceFormat:
    text = head.lstrip("\ufeff \t\r\n")
    if not text:
        return SourceFormat.UNSUPPORTED
    if text[0] == "<":
        return SourceFormat.HIERARCHICAL
    if text[0] in "{[":
        return SourceFormat.TREE
    first_line = text.splitlines()[0]
    if "," in first_line:
        return SourceFormat.TABULAR
    return SourceFormat.UNSUPPORTED
