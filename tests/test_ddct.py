import math

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from calculations.ddct import (
    HousekeeperNotFoundError,
    calculate_processing_rows,
    get_fold_change_for_samples,
    process_all_genes,
    process_gene,
)
from calculations.models import GeneData, ProcessingConfig, ReplicaGroup


def _gene(name, groups, samples=None):
    """Helper to build a grouped GeneData from lists of CT values."""
    samples = samples or [f"S{i + 1}" for i in range(len(groups))]
    return GeneData(
        name=name,
        measurements=(),
        replica_groups=tuple(
            ReplicaGroup(sample_name=s, sample_number=i + 1, ct_values=tuple(cts))
            for i, (s, cts) in enumerate(zip(samples, groups))
        ),
    )


@pytest.fixture
def config():
    return ProcessingConfig(replica_count=3, housekeeper="GAPDH", samples=("S1", "S2"))


@pytest.fixture
def gapdh():
    return _gene("GAPDH", [[20.0, 20.0, 20.0], [22.0, 22.0, 22.0]])


@pytest.fixture
def tp53():
    return _gene("TP53", [[25.0, 25.0, 25.0], [25.0, 25.0, 25.0]])


def _summary(rows):
    return [r for r in rows if not r.is_replica_row]


class TestCalculateProcessingRows:
    def test_known_delta_values(self, tp53, gapdh, config):
        """Sample 1: dCT 25-20=5, ddCT 0, FC 1. Sample 2: dCT 25-22=3, ddCT -2, FC 4."""
        rows = _summary(calculate_processing_rows(tp53, gapdh, config))
        assert [r.delta_ct for r in rows] == pytest.approx([5.0, 3.0])
        assert [r.delta_delta_ct for r in rows] == pytest.approx([0.0, -2.0])
        assert [r.fold_change for r in rows] == pytest.approx([1.0, 4.0])

    def test_row_layout(self, tp53, gapdh, config):
        """Each summary row is followed by its replica rows."""
        rows = calculate_processing_rows(tp53, gapdh, config)
        assert len(rows) == 8
        assert [r.is_replica_row for r in rows] == [False, True, True, True] * 2
        assert [r.replica_index for r in rows[1:4]] == [0, 1, 2]
        assert [r.sample_name for r in rows] == ["S1"] * 4 + ["S2"] * 4

    def test_replica_rows_carry_raw_values_only(self, config):
        target = _gene("TP53", [[24.0, 25.0, 26.0]])
        hk = _gene("GAPDH", [[19.0, 20.0, 21.0]])
        rows = calculate_processing_rows(target, hk, config)
        replicas = rows[1:]
        assert [r.ct_values for r in replicas] == [(24.0,), (25.0,), (26.0,)]
        assert [r.hk_ct_values for r in replicas] == [(19.0,), (20.0,), (21.0,)]
        for r in replicas:
            assert r.ct_mean == r.ct_std == r.delta_ct == r.delta_delta_ct == 0
            assert r.combined_std == r.fold_change == r.sem == 0

    def test_statistics_with_variance(self, config):
        target = _gene("TP53", [[24.0, 25.0, 26.0]])
        hk = _gene("GAPDH", [[19.0, 20.0, 21.5]])
        summary = calculate_processing_rows(target, hk, config)[0]

        ct_std = np.std([24.0, 25.0, 26.0], ddof=1)
        hk_std = np.std([19.0, 20.0, 21.5], ddof=1)
        combined = math.sqrt(ct_std ** 2 + hk_std ** 2)

        assert summary.ct_mean == pytest.approx(25.0)
        assert summary.ct_std == pytest.approx(ct_std)
        assert summary.hk_ct_mean == pytest.approx(np.mean([19.0, 20.0, 21.5]))
        assert summary.hk_ct_std == pytest.approx(hk_std)
        assert summary.combined_std == pytest.approx(combined)
        assert summary.sem == pytest.approx(combined / math.sqrt(3))
        assert summary.delta_delta_ct == pytest.approx(0.0)

    def test_first_sample_is_reference(self, gapdh, config):
        target = _gene("MYC", [[30.0, 30.0, 30.0], [28.0, 28.0, 28.0]])
        rows = _summary(calculate_processing_rows(target, gapdh, config))
        # dCT: 10 and 6 -> ddCT relative to the first sample
        assert rows[1].delta_delta_ct == pytest.approx(-4.0)
        assert rows[1].fold_change == pytest.approx(16.0)

    def test_unpaired_samples_skipped(self, config):
        """Target has three groups, housekeeper two: the third is dropped entirely."""
        target = _gene("TP53", [[25.0] * 3, [25.0] * 3, [25.0] * 3])
        hk = _gene("GAPDH", [[20.0] * 3, [22.0] * 3])
        rows = calculate_processing_rows(target, hk, config)
        assert {r.sample_number for r in rows} == {1, 2}

    def test_pairs_by_position_not_name(self, config):
        target = _gene("TP53", [[25.0] * 3], samples=["A"])
        hk = _gene("GAPDH", [[20.0] * 3], samples=["B"])
        rows = calculate_processing_rows(target, hk, config)
        assert rows[0].sample_name == "A"
        assert rows[0].delta_ct == pytest.approx(5.0)

    def test_no_groups_gives_no_rows(self, gapdh, config):
        assert calculate_processing_rows(_gene("TP53", []), gapdh, config) == []

    def test_single_replicate_std_zero(self):
        config = ProcessingConfig(replica_count=1, housekeeper="GAPDH")
        rows = calculate_processing_rows(
            _gene("TP53", [[25.0], [26.0]]), _gene("GAPDH", [[20.0], [20.0]]), config
        )
        summary = _summary(rows)
        assert all(r.ct_std == 0 and r.sem == 0 for r in summary)
        assert summary[1].fold_change == pytest.approx(0.5)


class TestProcessGene:
    def test_first_delta_ct(self, tp53, gapdh, config):
        result = process_gene(tp53, gapdh, config)
        assert result.gene_name == "TP53"
        assert result.first_delta_ct == pytest.approx(5.0)

    def test_first_delta_ct_defaults_to_zero(self, gapdh, config):
        result = process_gene(_gene("TP53", []), gapdh, config)
        assert result.first_delta_ct == 0.0
        assert result.rows == ()

    def test_get_fold_change_for_samples(self, tp53, gapdh, config):
        result = process_gene(tp53, gapdh, config)
        values = get_fold_change_for_samples(result, ["S2", "S1", "missing"])
        assert values == pytest.approx([4.0, 1.0, 0.0])


class TestProcessAllGenes:
    def test_housekeeper_excluded(self, tp53, gapdh, config):
        results = process_all_genes({"GAPDH": gapdh, "TP53": tp53}, "GAPDH", config)
        assert list(results) == ["TP53"]

    def test_insertion_order_kept(self, tp53, gapdh, config):
        myc = _gene("MYC", [[27.0] * 3, [27.0] * 3])
        results = process_all_genes(
            {"TP53": tp53, "GAPDH": gapdh, "MYC": myc}, "GAPDH", config
        )
        assert list(results) == ["TP53", "MYC"]

    def test_missing_housekeeper_raises(self, tp53, config):
        with pytest.raises(HousekeeperNotFoundError, match="GAPDH"):
            process_all_genes({"TP53": tp53}, "GAPDH", config)

    def test_missing_housekeeper_is_key_error(self, tp53, config):
        with pytest.raises(KeyError):
            process_all_genes({"TP53": tp53}, "GAPDH", config)
