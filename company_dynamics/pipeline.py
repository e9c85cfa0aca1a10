"""R&D pipeline: staged products and catalog-driven product plans.

A :class:`Product` is an R&D bet made of ordered :class:`Stage` objects. A
stage may depend on an earlier stage and only starts once that stage has
succeeded. Each attempt takes ``duration_days``; at the end of an attempt a
uniform draw decides success. Failed stages are retried up to ``max_retries``
times before they complete as failures.

Products report three values to their owning company:

    - ``unlocked_value``: value realized by the leading run of succeeded stages.
    - ``expected_value``: option value of the stages still outstanding.
    - ``realised_revenue_per_year``: full revenue once a commercialising stage
      has succeeded.

:class:`ProductManager` optionally keeps the pipeline topped up from a
catalog of product templates, retiring finished products after a delay.
"""

from dataclasses import dataclass
import logging
import math
from typing import List, Optional, Set

from .config import ProductConfig, ProductPlanConfig, StageConfig
from .stochastic_processes import StochasticDriver

logger = logging.getLogger(__name__)

OPTION_VALUE_DISCOUNT = 0.25
PRODUCT_RETIRE_DELAY_DAYS = 913  # 2.5 years


@dataclass
class PipelineContext:
    """Per-company accumulator written to by advancing stages.

    Attributes:
        rd_opex: Stage spend accrued since the last reset.
        has_pipeline_update: Set whenever a stage completes or the product
            list changes.
    """

    rd_opex: float = 0.0
    has_pipeline_update: bool = False


class Stage:
    """Runtime state of one product stage."""

    def __init__(self, config: StageConfig):
        self.id = config.id
        self.name = config.name or config.id
        self.depends_on = config.depends_on
        self.success_prob = config.success_prob
        self.duration_days = config.duration_days
        self.value_realization = config.value_realization
        self.cost = config.cost_usd
        self.max_retries = config.max_retries
        self.commercialises_revenue = config.commercialises_revenue
        self.tries = 0
        self.elapsed = 0.0
        self.completed = False
        self.succeeded = False

    def can_start(self, done: Set[str]) -> bool:
        return not self.completed and (not self.depends_on or self.depends_on in done)

    def advance(self, dt_days: float, driver: StochasticDriver, context: PipelineContext) -> None:
        """Advance the current attempt by ``dt_days``.

        Draws one uniform only when an attempt finishes.
        """
        if self.completed:
            return
        context.rd_opex += self.cost * dt_days / 365
        self.elapsed += dt_days
        if self.elapsed < self.duration_days:
            return

        self.tries += 1
        hit = driver.uniform() < self.success_prob
        if hit or self.tries > self.max_retries:
            self.completed = True
        else:
            self.elapsed = 0.0
        self.succeeded = hit
        context.has_pipeline_update = True


@dataclass
class PlanMeta:
    """Bookkeeping a :class:`ProductManager` attaches to products.

    Products spawned from the catalog are ``managed``; products from the
    static pipeline only get a meta record once they finish, for retirement.
    """

    managed: bool = False
    template_id: Optional[str] = None
    created_age_days: float = 0.0
    next_spawn_age_days: float = math.inf
    next_spawn_scheduled: bool = False
    completed_age_days: Optional[float] = None


class Product:
    """An R&D bet composed of ordered stages."""

    def __init__(self, config: ProductConfig, product_id: Optional[str] = None):
        self.id = product_id or config.id
        self.label = config.label or config.id
        self.full_value = config.full_revenue_usd
        self.stages = [Stage(s) for s in config.stages]
        self.plan_meta: Optional[PlanMeta] = None

    def unlocked_value(self) -> float:
        """Value realized by the leading run of completed stages.

        Stops at the first incomplete stage; a failed stage zeroes the factor.
        """
        factor = 0.0
        for stage in self.stages:
            if not stage.completed:
                break
            if not stage.succeeded:
                factor = 0.0
                break
            factor += stage.value_realization
        return self.full_value * factor

    def is_commercialised(self) -> bool:
        return any(s.commercialises_revenue and s.completed and s.succeeded for s in self.stages)

    def realised_revenue_per_year(self) -> float:
        return self.full_value if self.is_commercialised() else 0.0

    def expected_value(self) -> float:
        """Discounted option value of the outstanding stages."""
        prob = 1.0
        expected = 0.0
        for stage in self.stages:
            if stage.completed and stage.succeeded:
                continue
            prob *= stage.success_prob
            expected = self.full_value * prob
        return expected * OPTION_VALUE_DISCOUNT

    def advance(self, dt_days: float, driver: StochasticDriver, context: PipelineContext) -> None:
        # Dependencies resolve against successes as of the start of the tick
        done = {s.id for s in self.stages if s.completed and s.succeeded}
        for stage in self.stages:
            if stage.can_start(done):
                stage.advance(dt_days, driver, context)

    @property
    def has_market(self) -> bool:
        return self.is_commercialised()

    @property
    def has_failure(self) -> bool:
        return any(s.completed and not s.succeeded for s in self.stages)

    @property
    def all_completed(self) -> bool:
        return bool(self.stages) and all(s.completed for s in self.stages)


def pick_weighted(templates: List[ProductConfig], driver: StochasticDriver) -> Optional[ProductConfig]:
    """Pick a template with probability proportional to its weight."""
    if not templates:
        return None
    roll = driver.uniform() * sum(t.weight for t in templates)
    for template in templates:
        roll -= template.weight
        if roll <= 0:
            return template
    return templates[-1]


class ProductManager:
    """Keeps a company's pipeline stocked from a product catalog.

    Managed products are tagged with :class:`PlanMeta`. Products added from the
    company's static pipeline are left alone except for retirement, which
    applies to every product once it has finished or failed.

    Args:
        plan: Catalog and pacing parameters.
        products: The owning company's product list, mutated in place.
        driver: Source of randomness for template picks and pacing.
        context: The owning company's pipeline context.
    """

    def __init__(
        self,
        plan: ProductPlanConfig,
        products: List[Product],
        driver: StochasticDriver,
        context: PipelineContext,
    ):
        self.plan = plan
        self.products = products
        self.driver = driver
        self.context = context
        self.spawn_queue: List[float] = []
        self.initialized = False
        self.id_counter = 0

    def managed_products(self) -> List[Product]:
        return [p for p in self.products if p.plan_meta is not None and p.plan_meta.managed]

    def tick(self, age_days: float) -> None:
        if not self.initialized:
            self.seed_initial_products(age_days)
            self.initialized = True
        self.retire_finished(age_days)
        self.schedule_spawns(age_days)
        self.process_spawn_queue(age_days)

    def seed_initial_products(self, age_days: float) -> None:
        while len(self.managed_products()) < self.plan.initial_count:
            if not self.try_spawn(age_days):
                break

    def retire_finished(self, age_days: float) -> None:
        for product in list(self.products):
            finished = product.all_completed or product.has_failure
            if product.plan_meta is None:
                if not finished:
                    continue
                product.plan_meta = PlanMeta()
            meta = product.plan_meta
            if meta.completed_age_days is None and finished:
                meta.completed_age_days = age_days
            if (
                meta.completed_age_days is not None
                and age_days - meta.completed_age_days >= PRODUCT_RETIRE_DELAY_DAYS
            ):
                self.products.remove(product)
                self.context.has_pipeline_update = True
                logger.info(f"Retired product '{product.label}' at age {age_days:.0f}d")

    def schedule_spawns(self, age_days: float) -> None:
        for product in self.managed_products():
            meta = product.plan_meta
            if not meta.next_spawn_scheduled and age_days >= meta.next_spawn_age_days:
                gap_days = max(0.0, self.plan.gap_years.sample(self.driver) * 365)
                self.spawn_queue.append(age_days + gap_days)
                meta.next_spawn_scheduled = True
        self.spawn_queue.sort()

    def process_spawn_queue(self, age_days: float) -> None:
        while self.spawn_queue and self.spawn_queue[0] <= age_days:
            self.try_spawn(age_days)
            self.spawn_queue.pop(0)

    def try_spawn(self, age_days: float) -> bool:
        """Spawn a product from the catalog, evicting the oldest if at capacity.

        Returns:
            True if a product was added.
        """
        template = self.pick_template()
        if template is None:
            return False
        self.ensure_capacity()
        suffix = f"{self.id_counter}_{math.floor(self.driver.uniform() * 1_000_000)}"
        self.id_counter += 1
        product = Product(template, product_id=f"{template.id}_{suffix}")
        replacement_years = self.plan.replacement_years.sample(self.driver)
        product.plan_meta = PlanMeta(
            managed=True,
            template_id=template.id,
            created_age_days=age_days,
            next_spawn_age_days=age_days + max(0.0, replacement_years * 365),
        )
        self.products.append(product)
        self.context.has_pipeline_update = True
        logger.info(f"Spawned product '{product.label}' ({product.id}) at age {age_days:.0f}d")
        return True

    def ensure_capacity(self) -> None:
        managed = self.managed_products()
        if len(managed) < self.plan.max_active:
            return
        oldest = min(managed, key=lambda p: p.plan_meta.created_age_days)
        self.products.remove(oldest)
        self.context.has_pipeline_update = True
        logger.debug(f"Evicted product '{oldest.label}' to make room")

    def pick_template(self) -> Optional[ProductConfig]:
        catalog = self.plan.catalog
        if self.plan.allow_duplicates:
            return pick_weighted(catalog, self.driver)
        used = {p.plan_meta.template_id for p in self.managed_products()}
        pool = [t for t in catalog if t.id not in used] or catalog
        return pick_weighted(pool, self.driver)
