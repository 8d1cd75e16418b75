#!/usr/bin/env python3

from pathlib import Path

from calculations.models import TabularDataset
from logger import get_logger
from shared import parse_tsv

logger = get_logger(__name__)

if __name__ == "__main__":
    print ("This is a class file, import me into a script")

class FileImporter:

    """A class to import qPCR result files exported as tab-separated text by the LightCycler.

    Usage:
      importer = FileImporter("path/to/run.txt")
      data = importer.import_file()
    """

    def __init__(self, filename: str):
        if not filename:
            raise ValueError("filename must be provided to FileImporter")
        self.filename = filename

    def read_text(self) -> str:
        try:
            raw = Path(self.filename).read_bytes()
        except OSError as e:
            raise RuntimeError(f"failed to read file '{self.filename}': {e}")

        try:
            return raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            logger.debug("%s is not valid UTF-8, falling back to latin-1", self.filename)
            return raw.decode("latin-1")

    def import_file(self) -> TabularDataset:
        """Read the export and return the parsed dataset.

        The first line is kept as the run title and the second as the column
        headers. Malformed content raises ValueError from the parser.
        """
        data = parse_tsv(self.read_text())
        logger.info(
            "Imported '%s': %d columns, %d rows", data.title, len(data.headers), len(data.rows)
        )
        return data
