from calculations.ddct import process_all_genes
from calculations.grouping import build_gene_data_with_groups
from calculations.models import PipelineResult, ProcessingConfig, TabularDataset
from calculations.normalize import generate_all_outputs
from logger import get_logger

logger = get_logger(__name__)


def process(data: TabularDataset, config: ProcessingConfig) -> PipelineResult:
    """Run grouping, ddCT processing and normalization from scratch.

    Nothing is cached between calls: the same dataset and configuration
    always yield identical tables. Detection and lookup failures
    (``CtColumnNotFoundError``, ``HousekeeperNotFoundError``) propagate and no
    partial result is returned. The output stage is empty until at least
    one control sample is configured.
    """
    gene_data = build_gene_data_with_groups(data, config.replica_count, config.samples)
    processing_results = process_all_genes(gene_data, config.housekeeper, config)

    if config.controls:
        output_results = generate_all_outputs(
            processing_results, config.controls, config.samples
        )
    else:
        output_results = {}

    logger.info(
        "Processed %d genes (%d target, %d with output tables)",
        len(gene_data), len(processing_results), len(output_results),
    )
    return PipelineResult(
        gene_data=gene_data,
        processing_results=processing_results,
        output_results=output_results,
    )


def find_ignored_genes(available_genes, result: PipelineResult, housekeeper: str) -> list[str]:
    """Genes present in the data that produced no output tables, housekeeper excluded."""
    return [
        gene for gene in available_genes
        if gene != housekeeper and gene not in result.output_results
    ]
