"""Cheap VBA presence checks shared by the container extractors."""

MACRO_INDICATORS = (
    "VBAProject",
    "Macros",
    "Sub ",
    "Function ",
    "End Sub",
    "End Function",
)

# Storage and part names that only exist when a VBA project is embedded
OLE_VBA_STORAGES = ("Macros", "_VBA_PROJECT_CUR", "VBA")
OOXML_VBA_PARTS = ("vbaproject.bin", "vbadata.xml")


def contains_macro_indicators(text: str) -> bool:
    return any(indicator in text for indicator in MACRO_INDICATORS)


def is_vba_part(name: str) -> bool:
    return name.lower().rsplit("/", 1)[-1] in OOXML_VBA_PARTS
