from .configuration import DEFAULT_CONFIG_FILENAME, DicomSorterSettings

__all__ = ["DEFAULT_CONFIG_FILENAME", "DicomSorterSettings"]
