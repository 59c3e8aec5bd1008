#!/usr/bin/env python3
"""
ResX / resw document model.

Parses a resource file into header and data records, checks the declared
schema version, extracts the translatable text in document order and writes
translated values back out. Two rewriting strategies are available:

  - TemplateResxRenderer regenerates the file from the fixed ResX 2.0
    boilerplate plus one snippet per data record.
  - TreeResxRenderer rewrites the parsed tree in place and serializes it.

Both produce the same records, in the same order, with comments dropped.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from lxml import etree

from errors import InvalidSchemaError, TranslationCountMismatchError

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------------------
# Format Constants
# ------------------------------------------------------------------------------

RESX_VERSION = "2.0"
RESX_MIME_TYPE = "text/microsoft-resx"
RESX_READER = (
    "System.Resources.ResXResourceReader, System.Windows.Forms, Version=4.0.0.0, "
    "Culture=neutral, PublicKeyToken=b77a5c561934e089"
)
RESX_WRITER = (
    "System.Resources.ResXResourceWriter, System.Windows.Forms, Version=4.0.0.0, "
    "Culture=neutral, PublicKeyToken=b77a5c561934e089"
)
STANDARD_RESHEADERS = (
    ("resmimetype", RESX_MIME_TYPE),
    ("version", RESX_VERSION),
    ("reader", RESX_READER),
    ("writer", RESX_WRITER),
)

XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

RESX_PREAMBLE = """\
<?xml version="1.0" encoding="utf-8"?>
<root>
  <!--
    Microsoft ResX Schema

    Version 2.0

    The primary goals of this format is to allow a simple XML format
    that is mostly human readable. The generation and parsing of the
    various data types are done through the TypeConverter classes
    associated with the data types.

    Example:

    ... ado.net/XML headers & schema ...
    <resheader name="resmimetype">text/microsoft-resx</resheader>
    <resheader name="version">2.0</resheader>
    <resheader name="reader">System.Resources.ResXResourceReader, System.Windows.Forms, ...</resheader>
    <resheader name="writer">System.Resources.ResXResourceWriter, System.Windows.Forms, ...</resheader>
    <data name="Name1"><value>this is my long string</value><comment>this is a comment</comment></data>
    <data name="Color1" type="System.Drawing.Color, System.Drawing">Blue</data>
    <data name="Bitmap1" mimetype="application/x-microsoft.net.object.binary.base64">
        <value>[base64 mime encoded serialized .NET Framework object]</value>
    </data>
    <data name="Icon1" type="System.Drawing.Icon, System.Drawing" mimetype="application/x-microsoft.net.object.bytearray.base64">
        <value>[base64 mime encoded string representing a byte array form of the .NET Framework object]</value>
        <comment>This is a comment</comment>
    </data>

    There are any number of "resheader" rows that contain simple
    name/value pairs.

    Each data row contains a name, and value. The row also contains a
    type or mimetype. Type corresponds to a .NET class that support
    text/value conversion through the TypeConverter architecture.
    Classes that don't support this are serialized and stored with the
    mimetype set.

    The mimetype is used for serialized objects, and tells the
    ResXResourceReader how to depersist the object. This is currently not
    extensible. For a given mimetype the value must be set accordingly:

    Note - application/x-microsoft.net.object.binary.base64 is the format
    that the ResXResourceWriter will generate, however the reader can
    read any of the formats listed below.

    mimetype: application/x-microsoft.net.object.binary.base64
    value   : The object must be serialized with
            : System.Runtime.Serialization.Formatters.Binary.BinaryFormatter
            : and then encoded with base64 encoding.

    mimetype: application/x-microsoft.net.object.soap.base64
    value   : The object must be serialized with
            : System.Runtime.Serialization.Formatters.Soap.SoapFormatter
            : and then encoded with base64 encoding.

    mimetype: application/x-microsoft.net.object.bytearray.base64
    value   : The object must be serialized into a byte array
            : using a System.ComponentModel.TypeConverter
            : and then encoded with base64 encoding.
    -->
  <xsd:schema id="root" xmlns="" xmlns:xsd="http://www.w3.org/2001/XMLSchema" xmlns:msdata="urn:schemas-microsoft-com:xml-msdata">
    <xsd:import namespace="http://www.w3.org/XML/1998/namespace" />
    <xsd:element name="root" msdata:IsDataSet="true">
      <xsd:complexType>
        <xsd:choice maxOccurs="unbounded">
          <xsd:element name="metadata">
            <xsd:complexType>
              <xsd:sequence>
                <xsd:element name="value" type="xsd:string" minOccurs="0" />
              </xsd:sequence>
              <xsd:attribute name="name" use="required" type="xsd:string" />
              <xsd:attribute name="type" type="xsd:string" />
              <xsd:attribute name="mimetype" type="xsd:string" />
              <xsd:attribute ref="xml:space" />
            </xsd:complexType>
          </xsd:element>
          <xsd:element name="assembly">
            <xsd:complexType>
              <xsd:attribute name="alias" type="xsd:string" />
              <xsd:attribute name="name" type="xsd:string" />
            </xsd:complexType>
          </xsd:element>
          <xsd:element name="data">
            <xsd:complexType>
              <xsd:sequence>
                <xsd:element name="value" type="xsd:string" minOccurs="0" msdata:Ordinal="1" />
                <xsd:element name="comment" type="xsd:string" minOccurs="0" msdata:Ordinal="2" />
              </xsd:sequence>
              <xsd:attribute name="name" type="xsd:string" use="required" msdata:Ordinal="1" />
              <xsd:attribute name="type" type="xsd:string" msdata:Ordinal="3" />
              <xsd:attribute name="mimetype" type="xsd:string" msdata:Ordinal="4" />
              <xsd:attribute ref="xml:space" />
            </xsd:complexType>
          </xsd:element>
          <xsd:element name="resheader">
            <xsd:complexType>
              <xsd:sequence>
                <xsd:element name="value" type="xsd:string" minOccurs="0" msdata:Ordinal="1" />
              </xsd:sequence>
              <xsd:attribute name="name" type="xsd:string" use="required" />
            </xsd:complexType>
          </xsd:element>
        </xsd:choice>
      </xsd:complexType>
    </xsd:element>
  </xsd:schema>
  <resheader name="resmimetype">
    <value>text/microsoft-resx</value>
  </resheader>
  <resheader name="version">
    <value>2.0</value>
  </resheader>
  <resheader name="reader">
    <value>System.Resources.ResXResourceReader, System.Windows.Forms, Version=4.0.0.0, Culture=neutral, PublicKeyToken=b77a5c561934e089</value>
  </resheader>
  <resheader name="writer">
    <value>System.Resources.ResXResourceWriter, System.Windows.Forms, Version=4.0.0.0, Culture=neutral, PublicKeyToken=b77a5c561934e089</value>
  </resheader>
"""

RESX_POSTAMBLE = "</root>\n"


def _create_secure_parser() -> etree.XMLParser:
    """Return an XML parser configured to avoid external entity resolution."""
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        dtd_validation=False,
        load_dtd=False,
        remove_blank_text=False,
        recover=False,
    )


# ------------------------------------------------------------------------------
# Document Model
# ------------------------------------------------------------------------------


@dataclass
class HeaderRecord:
    """A <resheader> row: document level name/value metadata."""

    name: Optional[str]
    value: str
    element: etree._Element


@dataclass
class DataRecord:
    """
    A <data> row holding one translatable value.

    Attributes:
        name: The record's name attribute, None when the attribute is missing
        value: The text that will be sent for translation
        comment: Optional translator comment (never written back)
        element: The lxml element the record was parsed from
        has_value_element: True when the text lives in a nested <value> element
        preserve_whitespace: True when the record carries xml:space="preserve"
    """

    name: Optional[str]
    value: str
    comment: Optional[str]
    element: etree._Element
    has_value_element: bool = True
    preserve_whitespace: bool = False


@dataclass
class TranslationEntry:
    """Outbound unit of the translation batch, one per indexed data record."""

    text: str

    def to_payload(self) -> dict:
        return {"Text": self.text}


def _header_value(element) -> str:
    value_elem = element.find("value")
    source = value_elem if value_elem is not None else element
    return "".join(source.itertext()).strip()


def _parse_data_record(element) -> DataRecord:
    value_elem = element.find("value")
    comment_elem = element.find("comment")

    if value_elem is not None:
        # Nested <value> text is taken verbatim, whitespace included.
        value = "".join(value_elem.itertext())
        has_value_element = True
    else:
        value = (element.text or "").strip()
        has_value_element = False

    comment = None
    if comment_elem is not None:
        comment = "".join(comment_elem.itertext())

    return DataRecord(
        name=element.get("name"),
        value=value,
        comment=comment,
        element=element,
        has_value_element=has_value_element,
        preserve_whitespace=element.get(XML_SPACE) == "preserve",
    )


class ResxDocument:
    """
    Represents a parsed .resx/.resw file.

    Header and data records keep a reference to their lxml element, so values
    can be rewritten without walking the tree a second time.
    """

    def __init__(self, tree: etree._ElementTree, source: str = "<memory>") -> None:
        self.tree = tree
        self.root = tree.getroot()
        self.source: str = source
        self.headers: List[HeaderRecord] = []
        self.records: List[DataRecord] = []
        self._translatable: Optional[List[DataRecord]] = None
        self._index_records()

    @classmethod
    def from_bytes(cls, data: bytes, source: str = "<memory>") -> "ResxDocument":
        """Parse raw file content; malformed XML raises InvalidSchemaError."""
        if not data or not data.strip():
            raise InvalidSchemaError(f"Invalid resw xml in {source}: document is empty")
        try:
            root = etree.fromstring(data, parser=_create_secure_parser())
        except etree.XMLSyntaxError as e:
            logger.error(f"XML parse error in {source}: {e}")
            raise InvalidSchemaError(f"Invalid resw xml in {source}: {e}") from e
        return cls(root.getroottree(), source=source)

    @classmethod
    def from_file(cls, path: Path) -> "ResxDocument":
        path = Path(path)
        return cls.from_bytes(path.read_bytes(), source=str(path))

    def _index_records(self) -> None:
        for elem in self.root.iter("resheader"):
            self.headers.append(
                HeaderRecord(
                    name=elem.get("name"), value=_header_value(elem), element=elem
                )
            )
        for elem in self.root.iter("data"):
            self.records.append(_parse_data_record(elem))
        logger.debug(
            f"Parsed {len(self.headers)} headers and {len(self.records)} data records from {self.source}"
        )

    def translatable_records(self) -> List[DataRecord]:
        """
        Return the ordered record index shared by extraction and rewriting.

        Records without a name attribute are excluded. The list is built once
        and the same list object is returned on every call.
        """
        if self._translatable is None:
            self._translatable = [r for r in self.records if r.name is not None]
            skipped = len(self.records) - len(self._translatable)
            if skipped:
                logger.warning(
                    f"Skipping {skipped} <data> element(s) without a name attribute in {self.source}"
                )
        return self._translatable

    def header(self, name: str) -> Optional[HeaderRecord]:
        for header in self.headers:
            if header.name == name:
                return header
        return None


# ------------------------------------------------------------------------------
# Version Validation & Entry Extraction
# ------------------------------------------------------------------------------


def has_supported_version(document: Optional[ResxDocument]) -> bool:
    """True when any <resheader name="version"> carries exactly "2.0"."""
    if document is None or document.root is None:
        return False
    return any(
        header.name == "version" and header.value == RESX_VERSION
        for header in document.headers
    )


def validate_resx_version(document: Optional[ResxDocument]) -> bool:
    """Return True for a version 2.0 document, raise InvalidSchemaError otherwise."""
    if has_supported_version(document):
        return True
    source = document.source if document is not None else "<unknown>"
    logger.error(f"Invalid resw xml: {source} does not declare version {RESX_VERSION}")
    raise InvalidSchemaError(
        f"Invalid resw xml: {source} does not declare resheader version {RESX_VERSION}"
    )


def extract_entries(document: ResxDocument) -> List[TranslationEntry]:
    """Return one TranslationEntry per named data record, in document order."""
    entries = [TranslationEntry(record.value) for record in document.translatable_records()]
    logger.debug(f"Extracted {len(entries)} translation entries from {document.source}")
    return entries


# ------------------------------------------------------------------------------
# Document Rewriting
# ------------------------------------------------------------------------------


def _remove_preserving_tail(element) -> None:
    """Remove an element while keeping its tail text attached to the tree."""
    parent = element.getparent()
    if parent is None:
        return
    tail = element.tail
    previous = element.getprevious()
    if tail is not None and tail.strip() == "":
        # Drop our own indentation, keep the one that closes the parent.
        if element.getnext() is None:
            if previous is not None:
                previous.tail = tail
            else:
                parent.text = tail
    elif tail:
        if previous is not None:
            previous.tail = (previous.tail or "") + tail
        else:
            parent.text = (parent.text or "") + tail
    parent.remove(element)


def _standardize_declaration(xml_bytes: bytes) -> bytes:
    return re.sub(
        rb"<\?xml version=['\"]1\.0['\"] encoding=['\"]utf-8['\"]\?>",
        b'<?xml version="1.0" encoding="utf-8"?>',
        xml_bytes,
        count=1,
        flags=re.IGNORECASE,
    )


class ResxRenderer(ABC):
    """Turns a document plus ordered translations into output file bytes."""

    name = "base"

    @abstractmethod
    def render(self, document: ResxDocument, translations: Sequence[str]) -> bytes:
        """Return the bytes of the translated resource file."""

    @staticmethod
    def _check_count(records: Sequence[DataRecord], translations: Sequence[str]) -> None:
        if len(records) != len(translations):
            raise TranslationCountMismatchError(len(records), len(translations))


class TemplateResxRenderer(ResxRenderer):
    """
    Regenerates the file as text from the fixed ResX 2.0 boilerplate.

    The resource compiler reads <value> elements textually, so each record is
    written with an explicit <value> child and xml:space="preserve".
    """

    name = "template"

    def _render_record(self, name: str, value: str) -> str:
        data = etree.Element("data")
        data.set("name", name)
        data.set(XML_SPACE, "preserve")
        data.text = "\n    "
        value_elem = etree.SubElement(data, "value")
        value_elem.text = value
        value_elem.tail = "\n  "
        return "  " + etree.tostring(data, encoding="unicode")

    def render(self, document: ResxDocument, translations: Sequence[str]) -> bytes:
        records = document.translatable_records()
        self._check_count(records, translations)

        parts = [RESX_PREAMBLE]
        for record, translated in zip(records, translations):
            parts.append(self._render_record(record.name, translated) + "\n")
        parts.append(RESX_POSTAMBLE)
        return "".join(parts).encode("utf-8")


class TreeResxRenderer(ResxRenderer):
    """
    Writes translations into the parsed tree and serializes it.

    The document passed to render() is modified in place.
    """

    name = "tree"

    def render(self, document: ResxDocument, translations: Sequence[str]) -> bytes:
        records = document.translatable_records()
        self._check_count(records, translations)

        for record in document.records:
            if record.name is None:
                _remove_preserving_tail(record.element)

        for record, translated in zip(records, translations):
            self._rewrite_record(record, translated)

        self._ensure_standard_headers(document)

        xml_bytes = etree.tostring(
            document.tree, encoding="utf-8", xml_declaration=True
        )
        return _standardize_declaration(xml_bytes).rstrip(b"\n") + b"\n"

    def _rewrite_record(self, record: DataRecord, translated: str) -> None:
        element = record.element
        for comment in element.findall("comment"):
            _remove_preserving_tail(comment)

        value_elem = element.find("value")
        if value_elem is None:
            indent = _indent_of(element)
            element.text = "\n" + indent + "  "
            value_elem = etree.SubElement(element, "value")
            value_elem.tail = "\n" + indent
        for child in list(value_elem):
            value_elem.remove(child)
        value_elem.text = translated

        element.set(XML_SPACE, "preserve")
        record.value = translated
        record.comment = None
        record.has_value_element = True
        record.preserve_whitespace = True

    def _ensure_standard_headers(self, document: ResxDocument) -> None:
        root = document.root
        first_data = root.find("data")
        indent = _indent_of(first_data) if first_data is not None else "  "
        for name, value in STANDARD_RESHEADERS:
            if document.header(name) is not None:
                continue
            header = etree.Element("resheader", name=name)
            header.text = "\n" + indent + "  "
            value_elem = etree.SubElement(header, "value")
            value_elem.text = value
            value_elem.tail = "\n" + indent
            header.tail = "\n" + indent
            if first_data is not None:
                first_data.addprevious(header)
            else:
                _append_child(root, header, indent)
            document.headers.append(HeaderRecord(name=name, value=value, element=header))
            logger.debug(f"Added missing <resheader name='{name}'> to {document.source}")


def _indent_of(element) -> str:
    """Guess the indentation used in front of an element (default two spaces)."""
    previous = element.getprevious()
    preceding = previous.tail if previous is not None else element.getparent().text
    m = re.search(r"\n([ \t]*)$", preceding or "")
    return m.group(1) if m else "  "


def _append_child(parent, child, indent: str) -> None:
    if len(parent) == 0:
        parent.text = "\n" + indent
    else:
        parent[-1].tail = "\n" + indent
    child.tail = "\n"
    parent.append(child)


RENDERERS = {
    TemplateResxRenderer.name: TemplateResxRenderer,
    TreeResxRenderer.name: TreeResxRenderer,
}


def build_renderer(name: Optional[str]) -> ResxRenderer:
    """Factory to create renderers by name (default: template)."""
    normalized = (name or TemplateResxRenderer.name).strip().lower()
    try:
        return RENDERERS[normalized]()
    except KeyError:
        raise ValueError(
            f"Unknown renderer '{name}'. Choose one of: {', '.join(sorted(RENDERERS))}"
        ) from None
