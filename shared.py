import csv
import io

import numpy as np
import pandas as pd

from calculations.grouping import NAME_COLUMN, detect_ct_column, should_ignore_row
from calculations.models import (
    GeneOutputResult,
    GeneProcessingResult,
    TabularDataset,
    ValidationError,
    ValidationResult,
)
from calculations.statistics import format_number
from config import get_settings

STATUS_COLUMN = "Status"


# ---------------------------------------------------------------------------
# File import
# ---------------------------------------------------------------------------

def parse_tsv(content: str) -> TabularDataset:
    """Parse a tab-separated instrument export.

    Line 1 is the run title, line 2 the column headers and every further
    non-blank line a data row. Cells are trimmed; rows shorter than the
    header are padded with empty strings.
    """
    lines = content.strip().splitlines()
    if len(lines) < 3:
        raise ValueError(
            "Invalid file format: File must have at least 3 rows (title, headers, data)"
        )

    title = lines[0].strip()
    body = "\n".join([lines[1]] + [line for line in lines[2:] if line.strip()])

    df = pd.read_csv(
        io.StringIO(body),
        sep="\t",
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        quoting=csv.QUOTE_NONE,
        index_col=False,
    )
    df.columns = [str(c).strip() for c in df.columns]
    df = df.fillna("")
    if not df.empty:
        df = df.apply(lambda col: col.str.strip())

    return TabularDataset(
        title=title,
        headers=tuple(df.columns),
        rows=tuple(df.to_dict(orient="records")),
    )


def import_file(file_path: str, name: str | None = None) -> TabularDataset:
    """Read a .txt/.tsv export from disk into a TabularDataset.

    *name* is the original filename when *file_path* is an upload temp file;
    the extension check uses it instead of the temp path.
    """
    if not (name or file_path).endswith((".txt", ".tsv")):
        raise ValueError(f"Unsupported file format: {name or file_path}")
    from qpcr_importer import FileImporter
    return FileImporter(file_path).import_file()


def dataset_to_frame(data: TabularDataset, drop_ignored: bool = True) -> pd.DataFrame:
    """DataFrame view of the dataset for display, marker rows removed by default."""
    if drop_ignored:
        data = filter_ignored_rows(data)
    return pd.DataFrame(list(data.rows), columns=list(data.headers))


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------

def extract_gene_names(data: TabularDataset) -> list[str]:
    """Distinct gene names in order of first appearance, marker rows excluded."""
    names = {}
    for row in data.rows:
        name = (row.get(NAME_COLUMN) or "").strip()
        if name and not should_ignore_row(row):
            names.setdefault(name, None)
    return list(names)


def filter_ignored_rows(data: TabularDataset) -> TabularDataset:
    return TabularDataset(
        title=data.title,
        headers=data.headers,
        rows=tuple(row for row in data.rows if not should_ignore_row(row)),
    )


def filter_rows_by_gene(data: TabularDataset, gene_name: str) -> list[dict[str, str]]:
    return [
        row for row in data.rows
        if row.get(NAME_COLUMN) == gene_name and not should_ignore_row(row)
    ]


def count_gene_rows(data: TabularDataset, gene_name: str) -> int:
    return len(filter_rows_by_gene(data, gene_name))


def extract_status_warnings(data: TabularDataset) -> list[str]:
    """Distinct non-empty values of the Status column, in order of appearance."""
    warnings = {}
    for row in data.rows:
        status = (row.get(STATUS_COLUMN) or "").strip()
        if status:
            warnings.setdefault(status, None)
    return list(warnings)


def parse_sample_list(text: str) -> list[str]:
    """One sample name per line; surrounding whitespace and blank lines dropped."""
    return [line.strip() for line in (text or "").split("\n") if line.strip()]


def generate_sample_names(total_rows: int, replica_count: int, prefix: str = "Sample") -> list[str]:
    if replica_count < 1:
        return []
    return [f"{prefix} {i}" for i in range(1, total_rows // replica_count + 1)]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_tsv_data(data: TabularDataset) -> ValidationResult:
    errors = []

    if NAME_COLUMN not in data.headers:
        errors.append(ValidationError("headers", 'Missing required "Name" column in data'))

    if detect_ct_column(data) is None and len(data.headers) < 2:
        errors.append(ValidationError("headers", "Data must contain CT value columns"))

    if not data.rows:
        errors.append(ValidationError("rows", "No data rows found in file"))

    return ValidationResult.from_errors(errors)


def validate_replica_count(count) -> ValidationResult:
    max_count = get_settings().MAX_REPLICA_COUNT
    errors = []
    if count is None or isinstance(count, bool) or not float(count).is_integer():
        errors.append(ValidationError("replicaCount", "Replica count must be a whole number"))
    elif count < 1:
        errors.append(ValidationError("replicaCount", "Replica count must be at least 1"))
    elif count > max_count:
        errors.append(ValidationError("replicaCount", f"Replica count cannot exceed {max_count}"))
    return ValidationResult.from_errors(errors)


def validate_housekeeper(housekeeper: str, available_genes) -> ValidationResult:
    errors = []
    if not housekeeper or not housekeeper.strip():
        errors.append(ValidationError("housekeeper", "Please select a housekeeper gene"))
    elif housekeeper not in available_genes:
        errors.append(ValidationError(
            "housekeeper", f'"{housekeeper}" is not a valid gene in the data'
        ))
    return ValidationResult.from_errors(errors)


def validate_sample_list(samples, total_data_rows: int, replica_count: int) -> ValidationResult:
    samples = list(samples)
    errors = []

    if not samples:
        errors.append(ValidationError("sampleList", "Please enter at least one sample name"))

    if len(set(samples)) != len(samples):
        errors.append(ValidationError("sampleList", "Duplicate sample names found"))

    expected = total_data_rows // replica_count if replica_count >= 1 else 0
    if len(samples) > expected:
        errors.append(ValidationError(
            "sampleList",
            f"Too many samples. Data supports {expected} samples "
            f"with {replica_count} replicas each",
        ))

    return ValidationResult.from_errors(errors)


def validate_control_list(controls, samples) -> ValidationResult:
    controls = list(controls)
    errors = []

    if not controls:
        errors.append(ValidationError("controlList", "Please enter at least one control sample"))

    invalid = [c for c in controls if c not in samples]
    if invalid:
        errors.append(ValidationError(
            "controlList",
            f"Invalid control(s): {', '.join(invalid)}. Controls must be in the sample list.",
        ))

    if len(set(controls)) != len(controls):
        errors.append(ValidationError("controlList", "Duplicate control names found"))

    return ValidationResult.from_errors(errors)


def validate_processing_config(config, data: TabularDataset, available_genes) -> ValidationResult:
    """Run every configuration check; the sample limit uses the first gene's row count."""
    available_genes = list(available_genes)
    gene_row_count = count_gene_rows(data, available_genes[0]) if available_genes else 0

    errors = []
    errors.extend(validate_replica_count(config.replica_count).errors)
    errors.extend(validate_housekeeper(config.housekeeper, available_genes).errors)
    errors.extend(validate_sample_list(config.samples, gene_row_count, config.replica_count).errors)
    errors.extend(validate_control_list(config.controls, config.samples).errors)
    return ValidationResult.from_errors(errors)


# ---------------------------------------------------------------------------
# Table conversion
# ---------------------------------------------------------------------------

PROCESSING_COLUMNS = [
    "#", "Sample", "CT", "STD", "[CT]", "H CT", "H STD", "H [CT]",
    "ΔCT", "ΔΔCT", "Combined STD", "2^-ΔΔCT", "SEM",
]


def processing_rows_to_frame(result: GeneProcessingResult) -> pd.DataFrame:
    """Processing table of one gene; replica rows only carry their raw CT values."""
    records = []
    for row in result.rows:
        if row.is_replica_row:
            records.append({
                "#": None,
                "Sample": "",
                "CT": row.ct_values[0],
                "H CT": row.hk_ct_values[0],
            })
            continue
        records.append({
            "#": row.sample_number,
            "Sample": row.sample_name,
            "CT": row.ct_values[0] if row.ct_values else np.nan,
            "STD": row.ct_std,
            "[CT]": row.ct_mean,
            "H CT": row.hk_ct_values[0] if row.hk_ct_values else np.nan,
            "H STD": row.hk_ct_std,
            "H [CT]": row.hk_ct_mean,
            "ΔCT": row.delta_ct,
            "ΔΔCT": row.delta_delta_ct,
            "Combined STD": row.combined_std,
            "2^-ΔΔCT": row.fold_change,
            "SEM": row.sem,
        })
    return pd.DataFrame(records, columns=PROCESSING_COLUMNS)


def fold_change_rows_to_frame(output: GeneOutputResult) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Control": row.control_name,
                "Control 2^-ΔΔCT": row.control_fold_change if row.control_name else np.nan,
                "Observed": row.observed_name,
                "Observed 2^-ΔΔCT": row.observed_fold_change if row.observed_name else np.nan,
            }
            for row in output.fold_change_rows
        ],
        columns=["Control", "Control 2^-ΔΔCT", "Observed", "Observed 2^-ΔΔCT"],
    )


def normalized_rows_to_frame(output: GeneOutputResult) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Control": row.control_name,
                "norm Control": row.normalized_control if row.control_name else np.nan,
                "Observed": row.observed_name,
                "norm Observed": row.normalized_observed if row.observed_name else np.nan,
            }
            for row in output.normalized_rows
        ],
        columns=["Control", "norm Control", "Observed", "norm Observed"],
    )


def outputs_to_frame(outputs: dict[str, GeneOutputResult]) -> pd.DataFrame:
    """Long-format table of every gene's fold-change and normalized values."""
    records = []
    for gene_name, output in outputs.items():
        for fc, norm in zip(output.fold_change_rows, output.normalized_rows):
            records.append({
                "Gene": gene_name,
                "Control": fc.control_name,
                "Control 2^-ΔΔCT": fc.control_fold_change,
                "norm Control": norm.normalized_control,
                "Observed": fc.observed_name,
                "Observed 2^-ΔΔCT": fc.observed_fold_change,
                "norm Observed": norm.normalized_observed,
                "Control Average": output.control_average,
            })
    return pd.DataFrame(records, columns=[
        "Gene", "Control", "Control 2^-ΔΔCT", "norm Control",
        "Observed", "Observed 2^-ΔΔCT", "norm Observed", "Control Average",
    ])


# ---------------------------------------------------------------------------
# Plot helpers
# ---------------------------------------------------------------------------

def apply_classic_theme(fig):
    """Apply a classic theme (white background, axis lines, no gridlines)."""
    fig.update_layout(
        template="simple_white",
        plot_bgcolor="white",
        xaxis=dict(
            showline=True, linewidth=1, linecolor="black",
            mirror=False, showgrid=False,
        ),
        yaxis=dict(
            showline=True, linewidth=1, linecolor="black",
            mirror=False, showgrid=False,
        ),
    )
    return fig


# ---------------------------------------------------------------------------
# Export helpers
# ---------------------------------------------------------------------------

def _normalized_cells(row, decimals: int) -> tuple[str, str]:
    control = format_number(row.normalized_control, decimals) if row.control_name else ""
    observed = format_number(row.normalized_observed, decimals) if row.observed_name else ""
    return control, observed


def format_normalized_as_tsv(output: GeneOutputResult, decimals: int = 4) -> str:
    """Normalized values of one gene as headerless ``control<TAB>observed`` lines."""
    return "\n".join(
        "\t".join(_normalized_cells(row, decimals)) for row in output.normalized_rows
    )


def format_all_normalized_as_tsv(outputs: dict[str, GeneOutputResult], decimals: int = 4) -> str:
    """Side-by-side normalized values of every gene, padded to the longest table."""
    gene_names = list(outputs)
    lines = ["\t".join(
        part for name in gene_names for part in (f"{name} Control", f"{name} Observed")
    )]

    max_rows = max((len(o.normalized_rows) for o in outputs.values()), default=0)
    for i in range(max_rows):
        parts = []
        for name in gene_names:
            rows = outputs[name].normalized_rows
            parts.extend(_normalized_cells(rows[i], decimals) if i < len(rows) else ("", ""))
        lines.append("\t".join(parts))

    return "\n".join(lines)


def export_to_excel(df: pd.DataFrame) -> bytes:
    buf = io.BytesIO()
    df.to_excel(buf, index=False)
    return buf.getvalue()


def export_to_csv(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")
