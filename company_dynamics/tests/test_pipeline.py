"""Tests for R&D pipeline products and product plans."""

import pytest

from company_dynamics.config import ProductConfig, ProductPlanConfig, StageConfig
from company_dynamics.pipeline import (
    PRODUCT_RETIRE_DELAY_DAYS,
    PipelineContext,
    Product,
    ProductManager,
    Stage,
    pick_weighted,
)


def _drug(full_value=1_000_000_000.0) -> ProductConfig:
    return ProductConfig(
        id="drug",
        label="Drug X",
        full_revenue_usd=full_value,
        stages=[
            StageConfig(id="p1", success_prob=0.5, duration_days=100, value_realization=0.1),
            StageConfig(
                id="p2", depends_on="p1", success_prob=0.4, duration_days=100, value_realization=0.2
            ),
            StageConfig(
                id="approval",
                depends_on="p2",
                success_prob=0.8,
                duration_days=100,
                value_realization=0.7,
                commercialises_revenue=True,
            ),
        ],
    )


class TestStage:
    """Test stage attempts, retries and spend."""

    def test_success_after_duration(self, make_driver):
        stage = Stage(StageConfig(id="a", success_prob=0.6, duration_days=100, cost_usd=365))
        context = PipelineContext()
        driver = make_driver(uniforms=[0.5])

        stage.advance(50, driver, context)
        assert not stage.completed
        assert context.rd_opex == pytest.approx(50)
        assert driver.uniform_calls == 0

        stage.advance(50, driver, context)
        assert stage.completed and stage.succeeded
        assert stage.tries == 1
        assert context.has_pipeline_update

    def test_retry_then_fail(self, make_driver):
        stage = Stage(StageConfig(id="a", success_prob=0.4, duration_days=10, max_retries=1))
        context = PipelineContext()
        driver = make_driver(uniforms=[0.9, 0.9])

        stage.advance(10, driver, context)
        assert not stage.completed
        assert stage.elapsed == 0
        assert stage.tries == 1

        stage.advance(10, driver, context)
        assert stage.completed
        assert not stage.succeeded

    def test_completed_stage_is_inert(self, make_driver):
        stage = Stage(StageConfig(id="a", duration_days=0, cost_usd=1000))
        context = PipelineContext()
        stage.advance(1, make_driver(), context)
        spend = context.rd_opex

        stage.advance(100, make_driver(), context)
        assert context.rd_opex == spend

    def test_can_start_requires_dependency(self):
        stage = Stage(StageConfig(id="b", depends_on="a"))
        assert not stage.can_start(set())
        assert stage.can_start({"a"})


class TestProduct:
    """Test product value accounting."""

    def test_initial_values(self):
        product = Product(_drug())

        assert product.unlocked_value() == 0
        assert product.realised_revenue_per_year() == 0
        assert product.expected_value() == pytest.approx(1e9 * 0.5 * 0.4 * 0.8 * 0.25)

    def test_dependent_stage_waits_a_tick(self, make_driver):
        """Test that a stage does not start on the tick its dependency completes."""
        product = Product(_drug())
        driver = make_driver(uniforms=[0.1])

        product.advance(100, driver, PipelineContext())

        assert product.stages[0].succeeded
        assert product.stages[1].elapsed == 0

    def test_partial_unlock_and_option_value(self, make_driver):
        product = Product(_drug())
        product.advance(100, make_driver(uniforms=[0.1]), PipelineContext())

        assert product.unlocked_value() == pytest.approx(1e8)
        assert product.expected_value() == pytest.approx(1e9 * 0.4 * 0.8 * 0.25)

    def test_commercialised(self, make_driver):
        product = Product(_drug())
        driver = make_driver(uniforms=[0.1, 0.1, 0.1])
        context = PipelineContext()
        for _ in range(3):
            product.advance(100, driver, context)

        assert product.has_market
        assert product.all_completed
        assert product.realised_revenue_per_year() == 1e9
        assert product.unlocked_value() == pytest.approx(1e9)
        assert product.expected_value() == 0

    def test_failure_zeroes_unlocked_value(self, make_driver):
        product = Product(_drug())
        driver = make_driver(uniforms=[0.1, 0.99])
        context = PipelineContext()
        product.advance(100, driver, context)
        product.advance(100, driver, context)

        assert product.has_failure
        assert product.unlocked_value() == 0
        assert not product.has_market


class TestPickWeighted:
    def test_respects_weights(self, make_driver):
        templates = [
            ProductConfig(id="a", weight=1),
            ProductConfig(id="b", weight=3),
        ]
        assert pick_weighted(templates, make_driver(uniforms=[0.2])).id == "a"
        assert pick_weighted(templates, make_driver(uniforms=[0.3])).id == "b"

    def test_empty(self, make_driver):
        assert pick_weighted([], make_driver()) is None


class TestProductManager:
    """Test catalog-driven spawning and retirement."""

    @pytest.fixture
    def plan(self):
        slow = [StageConfig(id="s", duration_days=10_000)]
        return ProductPlanConfig(
            catalog=[
                ProductConfig(id="alpha", stages=slow),
                ProductConfig(id="beta", stages=slow),
            ],
            max_active=2,
            initial_count=1,
            replacement_years=[1, 1],
            gap_years=[0, 0],
        )

    def test_spawn_cycle(self, plan, make_driver):
        products = []
        context = PipelineContext()
        manager = ProductManager(plan, products, make_driver(), context)

        manager.tick(14)
        assert [p.plan_meta.template_id for p in products] == ["alpha"]
        assert products[0].plan_meta.next_spawn_age_days == 379
        assert context.has_pipeline_update

        manager.tick(379)
        assert [p.plan_meta.template_id for p in products] == ["alpha", "beta"]

        manager.tick(744)
        assert [p.plan_meta.template_id for p in products] == ["beta", "alpha"]
        assert products[1].plan_meta.created_age_days == 744

    def test_spawned_ids_are_unique(self, plan, make_driver):
        products = []
        manager = ProductManager(plan, products, make_driver(), PipelineContext())
        for age in (14, 379, 744):
            manager.tick(age)

        assert len({p.id for p in products}) == len(products)

    def test_static_product_retired_after_delay(self, plan, make_driver):
        finished = Product(ProductConfig(id="done", stages=[StageConfig(id="s", duration_days=10)]))
        finished.advance(10, make_driver(), PipelineContext())
        assert finished.all_completed

        products = [finished]
        context = PipelineContext()
        no_spawn = plan.model_copy(update={"initial_count": 0})
        manager = ProductManager(no_spawn, products, make_driver(), context)

        manager.tick(100)
        assert products == [finished]
        manager.tick(100 + PRODUCT_RETIRE_DELAY_DAYS - 1)
        assert products == [finished]
        manager.tick(100 + PRODUCT_RETIRE_DELAY_DAYS)
        assert products == []
        assert context.has_pipeline_update
