import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from calculations.ddct import HousekeeperNotFoundError
from calculations.grouping import CtColumnNotFoundError
from calculations.models import ProcessingConfig
from calculations.pipeline import find_ignored_genes, process
from shared import parse_tsv


def _export(records, headers=("Name", "Cp", "Status")):
    """Render records as an instrument export (title line, header line, rows)."""
    lines = ["Experiment 2026-10-18 qPCR", "\t".join(headers)]
    lines += ["\t".join(str(v) for v in record) for record in records]
    return "\n".join(lines)


@pytest.fixture
def scenario_data():
    """GAPDH [20,20,20, 22,22,22], TP53 [25]*6 with a marker row in between."""
    records = [("GAPDH", f"{ct:.2f}", "") for ct in [20, 20, 20, 22, 22, 22]]
    records.append(("Sample 3", "18.50", ""))
    records += [("TP53", "25.00", "") for _ in range(6)]
    return parse_tsv(_export(records))


@pytest.fixture
def scenario_config():
    return ProcessingConfig(
        replica_count=3, housekeeper="GAPDH", samples=("S1", "S2"), controls=("S1",),
    )


class TestEndToEnd:
    def test_delta_values(self, scenario_data, scenario_config):
        result = process(scenario_data, scenario_config)
        tp53 = result.processing_results["TP53"]
        summary = tp53.summary_rows
        assert tp53.first_delta_ct == pytest.approx(5.0)
        assert [r.delta_ct for r in summary] == pytest.approx([5.0, 3.0])
        assert [r.delta_delta_ct for r in summary] == pytest.approx([0.0, -2.0])
        assert [r.fold_change for r in summary] == pytest.approx([1.0, 4.0])

    def test_normalized_output(self, scenario_data, scenario_config):
        output = process(scenario_data, scenario_config).output_results["TP53"]
        assert output.control_average == 1
        assert [(r.control_name, r.observed_name) for r in output.fold_change_rows] == [("S1", "S2")]
        row = output.normalized_rows[0]
        assert row.normalized_control == pytest.approx(1.0)
        assert row.normalized_observed == pytest.approx(4.0)

    def test_marker_row_never_a_gene(self, scenario_data, scenario_config):
        result = process(scenario_data, scenario_config)
        for mapping in (result.gene_data, result.processing_results, result.output_results):
            assert "Sample 3" not in mapping
        values = [m.value for gene in result.gene_data.values() for m in gene.measurements]
        assert 18.5 not in values

    def test_idempotent(self, scenario_data, scenario_config):
        first = process(scenario_data, scenario_config)
        second = process(scenario_data, scenario_config)
        assert first == second

    def test_housekeeper_not_processed(self, scenario_data, scenario_config):
        result = process(scenario_data, scenario_config)
        assert list(result.gene_data) == ["GAPDH", "TP53"]
        assert list(result.processing_results) == ["TP53"]

    def test_no_controls_skips_output(self, scenario_data):
        config = ProcessingConfig(replica_count=3, housekeeper="GAPDH", samples=("S1", "S2"))
        result = process(scenario_data, config)
        assert "TP53" in result.processing_results
        assert result.output_results == {}


class TestFailures:
    def test_missing_housekeeper(self, scenario_data):
        config = ProcessingConfig(replica_count=3, housekeeper="ACTB", samples=("S1",))
        with pytest.raises(HousekeeperNotFoundError):
            process(scenario_data, config)

    def test_no_ct_column(self, scenario_config):
        data = parse_tsv(_export([("GAPDH", "high")], headers=("Name", "Notes")))
        with pytest.raises(CtColumnNotFoundError):
            process(data, scenario_config)


class TestRaggedData:
    def test_short_housekeeper_truncates_target(self):
        """The housekeeper has one full group; the target's second sample is dropped."""
        records = [("GAPDH", "20.00", "")] * 4 + [("TP53", "25.00", "")] * 6
        config = ProcessingConfig(replica_count=3, housekeeper="GAPDH", samples=("S1", "S2"))
        result = process(parse_tsv(_export(records)), config)
        summary = result.processing_results["TP53"].summary_rows
        assert [r.sample_name for r in summary] == ["S1"]

    def test_gene_without_groups_still_reported(self):
        records = [("GAPDH", "20.00", "")] * 3 + [("TP53", "25.00", "")] * 2
        config = ProcessingConfig(
            replica_count=3, housekeeper="GAPDH", samples=("S1",), controls=("S1",),
        )
        result = process(parse_tsv(_export(records)), config)
        assert result.processing_results["TP53"].rows == ()
        assert result.output_results["TP53"].fold_change_rows[0].control_fold_change == 0.0


class TestFindIgnoredGenes:
    def test_lists_genes_without_output(self, scenario_data, scenario_config):
        result = process(scenario_data, scenario_config)
        ignored = find_ignored_genes(["GAPDH", "TP53", "NTC"], result, "GAPDH")
        assert ignored == ["NTC"]
