from calculations.grouping import pair_by_position
from calculations.models import (
    GeneData,
    GeneProcessingResult,
    ProcessingConfig,
    ProcessingTableRow,
)
from calculations.statistics import (
    combined_standard_deviation,
    fold_change,
    mean,
    sem,
    standard_deviation,
)
from logger import get_logger

logger = get_logger(__name__)


class HousekeeperNotFoundError(KeyError):
    """Raised when the configured housekeeper gene has no data."""


def calculate_processing_rows(target_gene: GeneData, housekeeper_gene: GeneData,
                              config: ProcessingConfig) -> list[ProcessingTableRow]:
    """Build the processing table for one target gene.

    Replica groups of the target and the housekeeper are paired by position.
    The dCT of the first paired sample is the reference for every ddCT of the
    gene (0 when nothing pairs). Each sample contributes a summary row
    followed by one replica row per raw target CT value.

    Parameters
    ----------
    target_gene : GeneData
        Gene being quantified, with replica groups attached.
    housekeeper_gene : GeneData
        Reference gene, grouped with the same sample list.
    config : ProcessingConfig
        Supplies the replica count used for SEM and replica rows.

    Returns
    -------
    list of ProcessingTableRow
        Summary and replica rows in sample order.
    """
    replica_count = config.replica_count
    pairs = list(pair_by_position(target_gene.replica_groups, housekeeper_gene.replica_groups))

    unpaired = len(target_gene.replica_groups) - len(pairs)
    if unpaired:
        logger.debug(
            "%s: %d sample(s) have no housekeeper group and were skipped",
            target_gene.name, unpaired,
        )

    # First pass: dCT of every paired sample, the first one is the reference
    delta_cts = [
        mean(target.ct_values) - mean(hk.ct_values)
        for _, target, hk in pairs
    ]
    reference_delta_ct = delta_cts[0] if delta_cts else 0.0

    rows = []
    for _, target, hk in pairs:
        ct_mean = mean(target.ct_values)
        ct_std = standard_deviation(target.ct_values)
        hk_mean = mean(hk.ct_values)
        hk_std = standard_deviation(hk.ct_values)

        delta_ct = ct_mean - hk_mean
        delta_delta_ct = delta_ct - reference_delta_ct

        combined_std = combined_standard_deviation(ct_std, hk_std)

        rows.append(ProcessingTableRow(
            sample_number=target.sample_number,
            sample_name=target.sample_name,
            ct_values=target.ct_values,
            ct_std=ct_std,
            ct_mean=ct_mean,
            hk_ct_values=hk.ct_values,
            hk_ct_std=hk_std,
            hk_ct_mean=hk_mean,
            delta_ct=delta_ct,
            delta_delta_ct=delta_delta_ct,
            combined_std=combined_std,
            fold_change=fold_change(delta_delta_ct),
            sem=sem(combined_std, replica_count, replica_count),
        ))

        for r in range(replica_count):
            if r >= len(target.ct_values):
                break
            hk_value = hk.ct_values[r] if r < len(hk.ct_values) else 0.0
            rows.append(ProcessingTableRow(
                sample_number=target.sample_number,
                sample_name=target.sample_name,
                ct_values=(target.ct_values[r],),
                ct_std=0.0,
                ct_mean=0.0,
                hk_ct_values=(hk_value,),
                hk_ct_std=0.0,
                hk_ct_mean=0.0,
                delta_ct=0.0,
                delta_delta_ct=0.0,
                combined_std=0.0,
                fold_change=0.0,
                sem=0.0,
                is_replica_row=True,
                replica_index=r,
            ))

    return rows


def process_gene(target_gene: GeneData, housekeeper_gene: GeneData,
                 config: ProcessingConfig) -> GeneProcessingResult:
    rows = calculate_processing_rows(target_gene, housekeeper_gene, config)
    first_summary = next((r for r in rows if not r.is_replica_row), None)
    return GeneProcessingResult(
        gene_name=target_gene.name,
        rows=tuple(rows),
        first_delta_ct=first_summary.delta_ct if first_summary else 0.0,
    )


def process_all_genes(gene_map: dict[str, GeneData], housekeeper: str,
                      config: ProcessingConfig) -> dict[str, GeneProcessingResult]:
    """Process every gene except the housekeeper.

    Raises
    ------
    HousekeeperNotFoundError
        If *housekeeper* is not a key of *gene_map*.
    """
    try:
        housekeeper_gene = gene_map[housekeeper]
    except KeyError:
        raise HousekeeperNotFoundError(f'Housekeeper gene "{housekeeper}" not found')

    results = {}
    for gene_name, gene in gene_map.items():
        if gene_name == housekeeper:
            continue
        results[gene_name] = process_gene(gene, housekeeper_gene, config)

    logger.debug("Processed %d target genes against %s", len(results), housekeeper)
    return results


def get_fold_change_for_samples(result: GeneProcessingResult, sample_names) -> list[float]:
    """Fold change of each named sample's summary row, 0.0 where there is none."""
    by_name = {}
    for row in result.summary_rows:
        by_name.setdefault(row.sample_name, row.fold_change)
    return [by_name.get(name, 0.0) for name in sample_names]
