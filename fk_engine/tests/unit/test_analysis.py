"""Unit tests for fk_engine.analysis."""

from __future__ import annotations

import pytest

from fk_engine.analysis import DependencyAnalyzer
from fk_engine.config import load_settings
from fk_engine.errors import ComputationLimitExceeded, GraphConsistencyError, InputError
from fk_engine.metadata.static import StaticMetadataProvider
from fk_engine.models.cycle import Severity
from fk_engine.models.layout import LayoutAlgorithm
from fk_engine.models.schema import ColumnMetadata, ForeignKeyMetadata, SchemaSnapshot, TableMetadata
from fk_engine.models.simulation import WarningType

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _columns(*names: str) -> list[ColumnMetadata]:
    cols = [ColumnMetadata(name="id", data_type="INTEGER", is_primary_key=True, nullable=False)]
    return cols + [ColumnMetadata(name=n, data_type="TEXT", nullable=True) for n in names]


def _snapshot() -> SchemaSnapshot:
    return SchemaSnapshot(
        database="shop",
        tables=[
            TableMetadata(
                name="customers",
                columns=_columns("preferred_order_id"),
                row_count=4,
                foreign_keys=[
                    ForeignKeyMetadata(
                        target_table="orders",
                        source_columns=["preferred_order_id"],
                        on_delete="SET NULL",
                    )
                ],
            ),
            TableMetadata(
                name="orders",
                columns=_columns("customer_id", "status"),
                row_count=10,
                foreign_keys=[
                    ForeignKeyMetadata(
                        target_table="customers",
                        source_columns=["customer_id"],
                        on_delete="CASCADE",
                    )
                ],
            ),
            TableMetadata(
                name="order_items",
                columns=_columns("order_id"),
                row_count=30,
                foreign_keys=[
                    ForeignKeyMetadata(target_table="orders", source_columns=["order_id"], on_delete="CASCADE")
                ],
            ),
        ],
    )


@pytest.fixture()
def provider() -> StaticMetadataProvider:
    return StaticMetadataProvider(_snapshot(), {("orders", "status = 'void'"): 2})


@pytest.fixture()
def analyzer(provider: StaticMetadataProvider) -> DependencyAnalyzer:
    return DependencyAnalyzer(provider, load_settings())


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestOpenPass:
    async def test_builds_graph_from_snapshot(self, analyzer: DependencyAnalyzer):
        analysis = await analyzer.open_pass()
        assert sorted(analysis.graph.tables) == ["customers", "order_items", "orders"]
        assert len(analysis.graph.edges) == 3
        assert analysis.snapshot.database == "shop"

    async def test_raise_policy_is_forwarded(self):
        snapshot = SchemaSnapshot(
            tables=[
                TableMetadata(
                    name="a",
                    foreign_keys=[ForeignKeyMetadata(target_table="ghost", source_columns=["g"])],
                )
            ]
        )
        analyzer = DependencyAnalyzer(StaticMetadataProvider(snapshot), load_settings(), on_missing_target="raise")
        with pytest.raises(GraphConsistencyError):
            await analyzer.open_pass()


class TestAnalysisPass:
    async def test_detect_cycles_is_cached(self, analyzer: DependencyAnalyzer):
        analysis = await analyzer.open_pass()
        assert analysis.cycle_report() is analysis.cycle_report()
        (cycle,) = analysis.detect_cycles()
        assert cycle.tables == ("customers", "orders")
        assert cycle.severity is Severity.HIGH

    async def test_strict_applies_after_lenient_call(self):
        names = [f"t{i}" for i in range(5)]
        snapshot = SchemaSnapshot(
            tables=[
                TableMetadata(
                    name=name,
                    columns=_columns("next_id"),
                    foreign_keys=[
                        ForeignKeyMetadata(
                            target_table=names[(i + 1) % 5],
                            source_columns=["next_id"],
                            on_delete="CASCADE",
                        )
                    ],
                )
                for i, name in enumerate(names)
            ]
        )
        analyzer = DependencyAnalyzer(StaticMetadataProvider(snapshot), load_settings(max_cycle_length=3))
        analysis = await analyzer.open_pass()

        analysis.layout(LayoutAlgorithm.HIERARCHICAL, cycles_only=True)
        assert analysis.detect_cycles() == []
        with pytest.raises(ComputationLimitExceeded) as exc_info:
            analysis.detect_cycles(strict=True)
        assert exc_info.value.limit == "max_cycle_length"

    async def test_breaking_suggestions(self, analyzer: DependencyAnalyzer):
        analysis = await analyzer.open_pass()
        (cycle,) = analysis.detect_cycles()
        (suggestion,) = analysis.breaking_suggestions(cycle)
        assert suggestion.source_table == "orders"

    async def test_would_create_cycle(self, analyzer: DependencyAnalyzer):
        analysis = await analyzer.open_pass()
        assert analysis.would_create_cycle("customers", "order_items").would_create_cycle is True
        assert analysis.would_create_cycle("order_items", "customers").would_create_cycle is False

    async def test_layout_cycles_only(self, analyzer: DependencyAnalyzer):
        analysis = await analyzer.open_pass()
        layout = analysis.layout(LayoutAlgorithm.HIERARCHICAL, cycles_only=True)
        assert sorted(n.id for n in layout.nodes) == ["customers", "orders"]

    async def test_simulate_delete_uses_provider_count(self, analyzer: DependencyAnalyzer):
        analysis = await analyzer.open_pass()
        result = await analysis.simulate_delete("orders", "status='void'")
        assert result.where_clause == "status = 'void'"
        assert result.entry("orders").affected_rows == 2
        assert result.entry("order_items").affected_rows == 6
        assert result.warnings_of(WarningType.FILTER_ESTIMATE) == []

    async def test_simulate_delete_unknown_count_assumes_all_rows(self, analyzer: DependencyAnalyzer):
        analysis = await analyzer.open_pass()
        result = await analysis.simulate_delete("orders", "id > 100")
        assert result.entry("orders").affected_rows == 10
        assert result.warnings_of(WarningType.FILTER_ESTIMATE)

    async def test_simulate_delete_reports_cycle(self, analyzer: DependencyAnalyzer):
        analysis = await analyzer.open_pass()
        result = await analysis.simulate_delete("customers")
        orders = result.entry("orders")
        assert orders is not None
        assert orders.affected_rows == 10
        assert result.circular_dependencies

    async def test_simulate_delete_invalid_filter(self, analyzer: DependencyAnalyzer):
        analysis = await analyzer.open_pass()
        with pytest.raises(InputError, match="not found"):
            await analysis.simulate_delete("orders", "colour = 'red'")

    async def test_simulate_delete_unknown_table(self, analyzer: DependencyAnalyzer):
        analysis = await analyzer.open_pass()
        with pytest.raises(InputError, match="ghost"):
            await analysis.simulate_delete("ghost")
