from calculations.grouping import pad_by_position
from calculations.models import (
    FoldChangeTableRow,
    GeneOutputResult,
    GeneProcessingResult,
    NormalizedTableRow,
)
from calculations.statistics import mean, round_to


def observed_samples(controls, all_samples) -> list[str]:
    """Non-control samples in sample order, cut to the number of controls."""
    observed = [s for s in all_samples if s not in controls]
    return observed[:min(len(observed), len(controls))]


def build_fold_change_table(result: GeneProcessingResult, controls,
                            all_samples) -> list[FoldChangeTableRow]:
    """Pair control and observed fold changes row by row.

    The i-th control is paired with the i-th observed sample purely by
    position. A side that runs out is reported with an empty name and a
    fold change of 0, as is a sample without a summary row.
    """
    controls = list(controls)
    fold_changes = {}
    for row in result.summary_rows:
        fold_changes.setdefault(row.sample_name, row.fold_change)

    rows = []
    for _, control_name, observed_name in pad_by_position(
        controls, observed_samples(controls, all_samples)
    ):
        rows.append(FoldChangeTableRow(
            control_name=control_name,
            control_fold_change=fold_changes.get(control_name, 0.0) if control_name else 0.0,
            observed_name=observed_name,
            observed_fold_change=fold_changes.get(observed_name, 0.0) if observed_name else 0.0,
        ))
    return rows


def calculate_control_average(fold_change_rows) -> float:
    """Mean control fold change over named, positive entries; 1.0 if there are none."""
    values = [
        row.control_fold_change
        for row in fold_change_rows
        if row.control_name and row.control_fold_change > 0
    ]
    return mean(values) if values else 1.0


def build_normalized_table(fold_change_rows, control_average: float) -> list[NormalizedTableRow]:
    if control_average == 0:
        control_average = 1.0
    return [
        NormalizedTableRow(
            control_name=row.control_name,
            normalized_control=row.control_fold_change / control_average,
            observed_name=row.observed_name,
            normalized_observed=row.observed_fold_change / control_average,
        )
        for row in fold_change_rows
    ]


def generate_gene_output(result: GeneProcessingResult, controls, all_samples) -> GeneOutputResult:
    """Fold-change table, control average and normalized table for one gene.

    The normalized values use the unrounded control average; only the
    reported ``control_average`` is rounded to 4 decimals.
    """
    fold_change_rows = build_fold_change_table(result, controls, all_samples)
    control_average = calculate_control_average(fold_change_rows)
    normalized_rows = build_normalized_table(fold_change_rows, control_average)
    return GeneOutputResult(
        gene_name=result.gene_name,
        fold_change_rows=tuple(fold_change_rows),
        control_average=round_to(control_average, 4),
        normalized_rows=tuple(normalized_rows),
    )


def generate_all_outputs(processing_results: dict[str, GeneProcessingResult], controls,
                         all_samples) -> dict[str, GeneOutputResult]:
    return {
        gene_name: generate_gene_output(result, controls, all_samples)
        for gene_name, result in processing_results.items()
    }
