"""
Generator Weights: Resolution and Helper Test Suite
===================================================

Per-event weight resolution against frozen registries, the output
product, the WeightHelper facade, concurrency and property-based
invariants over random runs.
"""

import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import polars as pl
import pyarrow as pa
import pytest
from hypothesis import given, strategies as st, settings

from genweights import (
    EventWeight, GenWeightProduct, GroupClassifier, GroupRegistry, LhapdfTable,
    RegistryFrozenError, UnknownWeightGroupInfo, UnmatchedWeightError, UnmatchedWeightPolicy,
    UnmatchedWeightWarning, WeightEntry, WeightGroupError, WeightHelper, WeightResolver, WeightType,
    create_weight_helper,
)
from conftest import PDF_SETS, SCALE_GRID, pdf_label, scale_label

pytestmark = pytest.mark.genweights


def _frozen_registry(*ranges):
    """Unknown groups covering the given ``(first, last)`` global index ranges."""
    registry = GroupRegistry()
    for n, (first, last) in enumerate(ranges):
        group = UnknownWeightGroupInfo(f"group_{n}")
        for index in range(first, last + 1):
            group.add_contained_id(index, f"w{index}")
        registry.append(group)
    registry.freeze()
    return registry


ROUND_TRIP_LABELS = [
    scale_label(1, 1.0, 1.0, 306000),
    scale_label(2, 2.0, 2.0, 306000),
    pdf_label(1, 306000),
    pdf_label(2, 306001),
]


# ============================================================================
# Resolver
# ============================================================================

class TestWeightResolver:
    """Two-phase group lookup."""

    def test_requires_frozen_registry(self):
        with pytest.raises(ValueError):
            WeightResolver(GroupRegistry())

    def test_probe_then_scan(self):
        resolver = WeightResolver(_frozen_registry((0, 2), (3, 5)))
        assert resolver.find_containing_group("", 4, 0) == 1
        assert resolver.find_containing_group("", 1, 1) == 0
        assert resolver.find_containing_group("w5", 5, 1) == 1

    def test_out_of_range_previous_index(self):
        resolver = WeightResolver(_frozen_registry((0, 2), (3, 5)))
        assert resolver.find_containing_group("", 2, -1) == 0
        assert resolver.find_containing_group("", 3, 17) == 1

    def test_id_only_match(self):
        resolver = WeightResolver(_frozen_registry((0, 2), (3, 5)))
        assert resolver.find_containing_group("w4", 100, 0) == 1

    def test_unmatched(self):
        resolver = WeightResolver(_frozen_registry((0, 2), (3, 5)))
        with pytest.raises(UnmatchedWeightError) as excinfo:
            resolver.find_containing_group("ghost", 42, 0)

        error = excinfo.value
        assert isinstance(error, LookupError)
        assert error.weight_id == "ghost"
        assert error.weight_index == 42
        assert error.n_groups == 2
        assert "Unmatched generator weight" in str(error)


class TestProducts:
    """Per-event GenWeightProduct assembly."""

    @pytest.fixture
    def resolver(self, lhapdf_table):
        registry = GroupClassifier(lhapdf_table).classify_labels(ROUND_TRIP_LABELS)
        return WeightResolver(registry)

    def test_round_trip(self, resolver):
        product = resolver.build_product([
            (1.1, "scale_variation_1"),
            (0.9, "scale_variation_2"),
            (1.05, "PDF_variation_1"),
            (0.95, "PDF_variation_2"),
        ], central_weight=2.5)

        assert product.is_sealed
        assert product.central_weight == 2.5
        assert product.num_weight_sets == 2
        assert product.entries == (
            WeightEntry(1.1, 0, 0), WeightEntry(0.9, 0, 1),
            WeightEntry(1.05, 1, 0), WeightEntry(0.95, 1, 1),
        )

    def test_from_values(self, resolver):
        product = resolver.build_product_from_values([1.1, 0.9, 1.05, 0.95])
        assert [(e.group_index, e.slot_index) for e in product] == [(0, 0), (0, 1), (1, 0), (1, 1)]

    def test_explicit_indices(self, resolver):
        product = resolver.build_product([
            EventWeight(0.95, "", 3),
            EventWeight(1.1, "", 0),
        ])
        assert product.entries == (WeightEntry(0.95, 1, 1), WeightEntry(1.1, 0, 0))

    def test_unmatched_raises(self, resolver):
        with pytest.raises(UnmatchedWeightError):
            resolver.build_product([(1.0, "scale_variation_1"), (1.0, "bogus")])

    def test_unmatched_skipped(self, resolver):
        with pytest.warns(UnmatchedWeightWarning):
            product = resolver.build_product(
                [(1.0, "scale_variation_1"), (1.0, "bogus"), (1.0, "PDF_variation_2")],
                policy=UnmatchedWeightPolicy.SKIP,
            )
        assert len(product) == 2
        assert product.n_skipped == 1
        assert [e.group_index for e in product] == [0, 1]

    def test_single_group_gives_empty_product(self, lhapdf_table):
        registry = GroupClassifier(lhapdf_table).classify_labels(ROUND_TRIP_LABELS[:2])
        product = WeightResolver(registry).build_product_from_values([1.0, 2.0])
        assert len(product) == 0
        assert product.is_sealed
        assert product.num_weight_sets == 1

    def test_sealed_product(self, resolver):
        product = resolver.build_product_from_values([1.0, 1.0, 1.0, 1.0])
        with pytest.raises(RegistryFrozenError):
            product.add_weight(1.0, 0, 0)

    def test_group_vector(self, resolver):
        product = resolver.build_product_from_values([1.1, 0.9, 1.05, 0.95])
        np.testing.assert_allclose(product.weights_for_group(1), [1.05, 0.95])

        padded = product.weights_for_group(0, n_slots=3)
        assert padded[:2].tolist() == [1.1, 0.9]
        assert math.isnan(padded[2])
        assert product.weights_for_group(7).size == 0

    def test_polars_export(self, resolver):
        frame = resolver.build_product_from_values([1.1, 0.9, 1.05, 0.95]).to_polars()
        assert frame.schema == {'value': pl.Float64, 'group_index': pl.Int32, 'slot_index': pl.Int32}
        assert frame['group_index'].to_list() == [0, 0, 1, 1]

    def test_arrow_export(self, resolver):
        table = resolver.build_product_from_values([1.1, 0.9, 1.05, 0.95], central_weight=1.5).to_arrow()
        assert table.num_rows == 4
        assert table.schema.field('slot_index').type == pa.int32()
        assert table.schema.metadata[b'central_weight'] == b'1.5'
        assert table.schema.metadata[b'num_weight_sets'] == b'2'

    def test_empty_product_exports(self):
        product = GenWeightProduct()
        assert product.to_polars().height == 0
        assert product.to_arrow().num_rows == 0


# ============================================================================
# Helper Facade
# ============================================================================

class TestWeightHelper:
    """Build-once registry and per-event products through WeightHelper."""

    def test_products_require_parsed_groups(self, helper):
        assert not helper.is_built
        with pytest.raises(WeightGroupError):
            helper.weight_product_from_values([1.0])
        with pytest.raises(WeightGroupError):
            helper.weight_groups

    def test_builds_once(self, helper, standard_run_labels):
        registry = helper.parse_weight_groups_from_names(standard_run_labels)
        again = helper.parse_weight_groups_from_names(['unrelated'])
        assert again is registry
        assert helper.is_built
        assert len(helper.weight_groups) == 3
        assert len(helper.parsed_weights) == len(standard_run_labels)

    def test_products(self, helper, standard_run_labels):
        helper.parse_weight_groups_from_names(standard_run_labels)
        values = np.linspace(0.5, 1.5, len(standard_run_labels))
        product = helper.weight_product_from_values(values, central_weight=3.0)

        assert len(product) == len(standard_run_labels)
        np.testing.assert_allclose(product.weights_for_group(1), values[9:14])

        ids = [w.id for w in helper.parsed_weights]
        assert helper.weight_product(zip(values, ids)).entries == product.entries

    def test_statistics(self, lhapdf_table, standard_run_labels):
        helper = WeightHelper(lhapdf_table, unmatched_policy=UnmatchedWeightPolicy.SKIP)
        assert helper.get_statistics()['built'] is False

        helper.parse_weight_groups_from_names(standard_run_labels)
        helper.weight_product_from_values([1.0] * len(standard_run_labels))
        with pytest.warns(UnmatchedWeightWarning):
            helper.weight_product([(1.0, "bogus", 99)])

        stats = helper.get_statistics()
        assert stats['built'] is True
        assert stats['n_groups'] == 3
        assert stats['n_weights'] == len(standard_run_labels)
        assert stats['groups_by_type'] == {'SCALE': 1, 'PDF': 1, 'ME_PARAM': 1, 'UNKNOWN': 0}
        assert stats['malformed_groups'] == 0
        assert stats['products_built'] == 2
        assert stats['unmatched_skipped'] == 1

    def test_overrides(self, lhapdf_table, config):
        helper = WeightHelper(lhapdf_table, config, pdf_markers=("PDF_member",))
        assert helper.config.pdf_markers == ("PDF_member",)
        assert config.pdf_markers == ("PDF_variation",)
        with pytest.raises(ValueError):
            WeightHelper(lhapdf_table, config, no_such_option=True)

    def test_rejects_non_lookup(self):
        with pytest.raises(TypeError):
            WeightHelper(object())

    def test_factory_without_lookup(self):
        helper = create_weight_helper()
        assert isinstance(helper.lhapdf, LhapdfTable)
        registry = helper.parse_weight_groups_from_names([scale_label(1, 1.0, 1.0), 'other'])
        assert len(registry) == 2

    def test_verbose_report(self, lhapdf_table, standard_run_labels, capsys):
        helper = WeightHelper(lhapdf_table, verbose=True)
        helper.parse_weight_groups_from_names(standard_run_labels)
        out = capsys.readouterr().out
        assert "Generator weight groups classified" in out
        assert "Groups: 3" in out


# ============================================================================
# Concurrency
# ============================================================================

class TestConcurrency:
    """Frozen registries are shared across event threads."""

    def test_concurrent_build(self, lhapdf_table, standard_run_labels):
        helper = WeightHelper(lhapdf_table)
        with ThreadPoolExecutor(max_workers=8) as pool:
            registries = list(pool.map(
                lambda _: helper.parse_weight_groups_from_names(standard_run_labels), range(32)
            ))
        assert all(r is registries[0] for r in registries)

    def test_concurrent_products(self, helper, standard_run_labels):
        helper.parse_weight_groups_from_names(standard_run_labels)
        rng = np.random.default_rng(42)
        events = [rng.normal(1.0, 0.1, len(standard_run_labels)) for _ in range(200)]

        serial = [helper.weight_product_from_values(e).entries for e in events]
        with ThreadPoolExecutor(max_workers=8) as pool:
            parallel = [p.entries for p in pool.map(helper.weight_product_from_values, events)]

        assert parallel == serial
        assert helper.get_statistics()['products_built'] == 400


# ============================================================================
# Property-Based Invariants
# ============================================================================

LABEL_KINDS = ['scale', 'scale_orphan', 'pdf', 'orphan', 'me', 'unknown']


def _label(kind, n):
    mu_r, mu_f = SCALE_GRID[n % len(SCALE_GRID)]
    if kind == 'scale':
        return scale_label(n, mu_r, mu_f, 306000)
    if kind == 'scale_orphan':
        mu_r, mu_f = SCALE_GRID[1 + n % (len(SCALE_GRID) - 1)]
        return scale_label(n, mu_r, mu_f, 13000)
    if kind == 'pdf':
        return pdf_label(n, 306000 + n)
    if kind == 'orphan':
        return f'nominal_{n} lhapdf="13000"'
    if kind == 'me':
        return f'mg_reweighting_{n}'
    return f'weight_{n % 3}'


class TestProperties:
    """Invariants over random runs."""

    @given(kinds=st.lists(st.sampled_from(LABEL_KINDS), min_size=1, max_size=40))
    @settings(max_examples=50)
    def test_every_weight_resolves_to_its_group(self, kinds):
        labels = [_label(kind, n) for n, kind in enumerate(kinds)]
        table = LhapdfTable.from_sets(PDF_SETS)
        classifier = GroupClassifier(table)
        registry = classifier.classify_labels(labels)

        # conservation and determinism
        assert registry.total_members() == len(labels)
        assert GroupClassifier(table).classify_labels(labels).to_dicts() == registry.to_dicts()

        product = WeightResolver(registry).build_product_from_values(range(len(labels)))
        if len(registry) < 2:
            assert len(product) == 0
            return

        assert len(product) == len(labels)
        for entry, weight in zip(product, classifier.parsed_weights):
            assert entry.group_index == weight.pending_group_index
            member = registry[entry.group_index].members[entry.slot_index]
            assert member.global_index == int(entry.value)

    @given(kinds=st.lists(st.sampled_from(LABEL_KINDS), min_size=1, max_size=40))
    @settings(max_examples=50)
    def test_central_entry_is_unit_scale(self, kinds):
        labels = [_label(kind, n) for n, kind in enumerate(kinds)]
        registry = GroupClassifier(LhapdfTable.from_sets(PDF_SETS)).classify_labels(labels)

        for group in registry.groups_by_type(WeightType.SCALE):
            if group.contains_central:
                central = group.members[group.central_index]
                assert group.mu_r_mu_f_by_index[central.global_index].is_central
