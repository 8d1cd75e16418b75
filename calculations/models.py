from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Raw input
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TabularDataset:
    """Parsed instrument export.

    ``rows`` holds one mapping per data line, keyed by header. Every row has
    a value for every header (empty string when the cell was missing).
    """
    title: str
    headers: tuple[str, ...]
    rows: tuple[dict[str, str], ...]


@dataclass(frozen=True)
class ProcessingConfig:
    replica_count: int
    housekeeper: str
    samples: tuple[str, ...] = ()
    controls: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CtMeasurement:
    value: float
    row_index: int


@dataclass(frozen=True)
class ReplicaGroup:
    sample_name: str
    sample_number: int  # 1-indexed position in the sample list
    ct_values: tuple[float, ...]


@dataclass(frozen=True)
class GeneData:
    name: str
    measurements: tuple[CtMeasurement, ...]
    replica_groups: tuple[ReplicaGroup, ...] = ()


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessingTableRow:
    """One line of a gene's processing table.

    Summary rows carry the per-sample statistics. Replica rows carry a single
    raw CT value (and the matching housekeeper CT) with every derived field
    left at 0.
    """
    sample_number: int
    sample_name: str
    ct_values: tuple[float, ...]
    ct_std: float
    ct_mean: float
    hk_ct_values: tuple[float, ...]
    hk_ct_std: float
    hk_ct_mean: float
    delta_ct: float
    delta_delta_ct: float
    combined_std: float
    fold_change: float
    sem: float
    is_replica_row: bool = False
    replica_index: int | None = None


@dataclass(frozen=True)
class GeneProcessingResult:
    gene_name: str
    rows: tuple[ProcessingTableRow, ...]
    first_delta_ct: float

    @property
    def summary_rows(self) -> tuple[ProcessingTableRow, ...]:
        return tuple(r for r in self.rows if not r.is_replica_row)


# ---------------------------------------------------------------------------
# Output / normalization
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FoldChangeTableRow:
    control_name: str
    control_fold_change: float
    observed_name: str
    observed_fold_change: float


@dataclass(frozen=True)
class NormalizedTableRow:
    control_name: str
    normalized_control: float
    observed_name: str
    normalized_observed: float


@dataclass(frozen=True)
class GeneOutputResult:
    gene_name: str
    fold_change_rows: tuple[FoldChangeTableRow, ...]
    control_average: float  # rounded to 4 decimals for display
    normalized_rows: tuple[NormalizedTableRow, ...]


@dataclass(frozen=True)
class PipelineResult:
    gene_data: dict[str, GeneData] = field(default_factory=dict)
    processing_results: dict[str, GeneProcessingResult] = field(default_factory=dict)
    output_results: dict[str, GeneOutputResult] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ValidationError:
    field: str
    message: str


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: tuple[ValidationError, ...] = ()

    @classmethod
    def from_errors(cls, errors) -> "ValidationResult":
        errors = tuple(errors)
        return cls(is_valid=not errors, errors=errors)
