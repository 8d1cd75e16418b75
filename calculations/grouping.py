import re
from itertools import zip_longest

import numpy as np
import pandas as pd

from calculations.models import CtMeasurement, GeneData, ReplicaGroup, TabularDataset
from logger import get_logger

logger = get_logger(__name__)

NAME_COLUMN = "Name"

# Priority order for CT column names
CT_COLUMN_NAMES = ("cp", "ct", "cq")

# "Sample 3", "sample12": plate marker rows, not gene data
_MARKER_ROW = re.compile(r"^Sample\s*\d+$", re.IGNORECASE)


class CtColumnNotFoundError(ValueError):
    """Raised when no column of the dataset looks like it holds CT values."""


# ---------------------------------------------------------------------------
# Column / row helpers
# ---------------------------------------------------------------------------

def _to_numeric(values) -> pd.Series:
    """Coerce raw string cells to floats; anything unparsable becomes NaN."""
    series = pd.Series(list(values), dtype=object).astype(str).str.strip()
    return pd.to_numeric(series, errors="coerce")


def should_ignore_row(row: dict[str, str]) -> bool:
    """True for marker rows whose Name is "Sample" followed by a number."""
    name = row.get(NAME_COLUMN) or ""
    return bool(_MARKER_ROW.match(name.strip()))


def detect_ct_column(data: TabularDataset) -> str | None:
    """Find the header holding CT values.

    Tries, in order: an exact (case-insensitive) ``Cp``/``CT``/``Cq`` header,
    a header containing one of those names, then the first non-Name column
    with a positive value written with a decimal point. Integer-only columns
    such as well colour codes are never picked by the last rule.
    """
    lowered = [(h, h.lower()) for h in data.headers]

    for name in CT_COLUMN_NAMES:
        for header, low in lowered:
            if low == name:
                return header

    for name in CT_COLUMN_NAMES:
        for header, low in lowered:
            if name in low:
                return header

    for header in data.headers:
        if header == NAME_COLUMN:
            continue
        raw = [row.get(header, "") for row in data.rows]
        numeric = _to_numeric(raw)
        has_decimal = pd.Series(raw, dtype=object).astype(str).str.contains(".", regex=False)
        if ((numeric > 0) & has_decimal).any():
            return header

    return None


# ---------------------------------------------------------------------------
# Extraction and grouping
# ---------------------------------------------------------------------------

def extract_gene_data(data: TabularDataset) -> dict[str, GeneData]:
    """Collect CT measurements per gene, in row order.

    Marker rows, rows without a name and rows whose CT cell is not a finite
    number are skipped. The returned mapping follows first appearance of each
    gene in the rows. Replica groups are left empty; see
    :func:`build_gene_data_with_groups`.
    """
    ct_column = detect_ct_column(data)
    if ct_column is None:
        raise CtColumnNotFoundError("Could not detect CT value column")

    ct_values = _to_numeric(row.get(ct_column, "") for row in data.rows)

    measurements: dict[str, list[CtMeasurement]] = {}
    skipped = 0
    for index, (row, value) in enumerate(zip(data.rows, ct_values)):
        if should_ignore_row(row):
            continue
        gene_name = row.get(NAME_COLUMN) or ""
        if not gene_name.strip():
            continue
        if not np.isfinite(value):
            skipped += 1
            continue
        measurements.setdefault(gene_name, []).append(
            CtMeasurement(value=float(value), row_index=index)
        )

    if skipped:
        logger.debug("Skipped %d rows with unparsable %s values", skipped, ct_column)

    return {
        name: GeneData(name=name, measurements=tuple(values))
        for name, values in measurements.items()
    }


def group_into_replicas(measurements, replica_count: int, sample_names) -> list[ReplicaGroup]:
    """Slice a gene's measurements into consecutive replica groups.

    Sample ``i`` receives ``measurements[i * replica_count:(i + 1) * replica_count]``.
    Grouping stops at the first sample whose slice would run past the end of
    the data; a partial trailing group is dropped, not truncated.
    """
    groups = []
    for i, sample_name in enumerate(sample_names):
        start = i * replica_count
        end = start + replica_count
        if end > len(measurements):
            break
        groups.append(
            ReplicaGroup(
                sample_name=sample_name,
                sample_number=i + 1,
                ct_values=tuple(m.value for m in measurements[start:end]),
            )
        )
    return groups


def build_gene_data_with_groups(data: TabularDataset, replica_count: int,
                                sample_names) -> dict[str, GeneData]:
    """Extract every gene and attach its replica groups in one step."""
    sample_names = list(sample_names)
    gene_map = {
        name: GeneData(
            name=gene.name,
            measurements=gene.measurements,
            replica_groups=tuple(
                group_into_replicas(gene.measurements, replica_count, sample_names)
            ),
        )
        for name, gene in extract_gene_data(data).items()
    }
    logger.debug(
        "Grouped %d genes into %d samples x %d replicas",
        len(gene_map), len(sample_names), replica_count,
    )
    return gene_map


def get_ct_values_for_sample(gene: GeneData, sample_number: int) -> tuple[float, ...]:
    """CT values of the 1-indexed sample, or an empty tuple if it was not grouped."""
    for group in gene.replica_groups:
        if group.sample_number == sample_number:
            return group.ct_values
    return ()


def get_target_genes(gene_map: dict[str, GeneData], housekeeper: str) -> list[str]:
    return [name for name in gene_map if name != housekeeper]


# ---------------------------------------------------------------------------
# Positional pairing
# ---------------------------------------------------------------------------

def pair_by_position(left, right):
    """Zip two sequences by position, not by identity.

    Yields ``(index, left[index], right[index])`` for every index present in
    both sequences; the longer tail is dropped. Target/housekeeper replica
    groups are paired this way, so sample names are never compared.
    """
    for index, (a, b) in enumerate(zip(left, right)):
        yield index, a, b


def pad_by_position(left, right, fill=""):
    """Like :func:`pair_by_position` but keeps the longer tail, padding with *fill*."""
    for index, (a, b) in enumerate(zip_longest(left, right, fillvalue=fill)):
        yield index, a, b
