"""Command-line entry point: `dicom-sorter` or `python -m dicomsorter.cli`.

DCMTK's storescp starts one run per received study::

    storescp -xcs "dicom-sorter #p" -ss study 104
"""

from .dicomsort import dicomsort as cli

if __name__ == "__main__":
    cli()
