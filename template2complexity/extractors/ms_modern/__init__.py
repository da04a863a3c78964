"""
Modern Word Template Extractor Package
======================================

Extractors for Office Open XML word-processing templates (Word 2007 and
later). These are ZIP archives of XML parts.

Supported Formats
-----------------

.docx / .dotx:
    Document and template. Text runs, field instructions, tables and
    core properties are read straight from the XML parts.

.docm / .dotm:
    Macro-enabled variants. Same parts plus ``word/vbaProject.bin``, whose
    presence marks the template as carrying macros. The VBA project itself
    is not decompiled.

Common Archive Structure:
    template.dotx/
    ├── [Content_Types].xml    # MIME types for parts
    ├── _rels/
    │   └── .rels              # Package relationships
    ├── docProps/
    │   ├── core.xml           # Title, author, revision
    │   └── app.xml            # Application properties
    └── word/
        ├── document.xml       # Main content
        ├── header1.xml        # Headers and footers
        ├── footnotes.xml      # Notes and comments
        └── vbaProject.bin     # Macros (.docm/.dotm only)

XML Namespaces:
    - http://schemas.openxmlformats.org/wordprocessingml/2006/main (w:)
    - http://schemas.openxmlformats.org/markup-compatibility/2006 (mc:)
    - http://schemas.openxmlformats.org/package/2006/metadata/core-properties (cp:)

Dependencies
------------
None beyond the standard library: ``zipfile`` for the container (checked
against ZIP-bomb limits before reading) and ``xml.etree.ElementTree`` for
the parts.
"""
