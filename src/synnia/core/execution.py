"""
Execution Pipeline - Runs a recipe node and expands the graph.

A run moves the node through idle -> running -> success | error:
1. Refresh connected inputs into the node's asset (one write)
2. Resolve effective inputs: schema defaults < stored values
3. Validate required fields and object keys
4. Execute the recipe
5. Materialize: store the result, synthesize node specs if needed
6. Reconcile: update the existing product or create new nodes

Every failure ends in node error state plus a notifier message; the
graph is only expanded after a successful execution.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, TYPE_CHECKING

from synnia.core.assets import FieldDefinition
from synnia.core.errors import (
    NodeNotFoundError,
    RecipeExecutionError,
    RecipeNotFoundError,
    RecipeValidationError,
    SynniaError,
)
from synnia.core.graph import Edge, Node, Point2D
from synnia.core.layout import stack_height
from synnia.core.ports import has_value
from synnia.nodes.recipe import recipe_id_of
from synnia.recipes.output import build_nodes_from_config
from synnia.recipes.registry import RecipeRegistry, get_recipe_registry
from synnia.recipes.types import (
    DOCK_PREVIOUS,
    POSITION_BELOW,
    POSITION_RIGHT,
    ExecutionContext,
    ExecutionResult,
    NodeSpec,
    RecipeDefinition,
)

if TYPE_CHECKING:
    from synnia.core.engine import GraphEngine
    from synnia.providers.registry import ProviderRegistry


logger = logging.getLogger(__name__)

# Gap between a recipe node and a product placed below or right of it
PRODUCT_GAP = 100.0


class ExecutionState(str, Enum):
    """Run state stored in a recipe node's `data["state"]`."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ExecutionOutcome:
    """What one run did."""
    node_id: str
    recipe_id: str | None
    state: ExecutionState
    error: str | None = None
    data: Any = None
    created_node_ids: list[str] = field(default_factory=list)
    updated_asset_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.state == ExecutionState.SUCCESS


class Notifier(Protocol):
    """Toast-style sink for user-facing run messages."""

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier that writes to the log."""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)


def validate_inputs(schema: list[FieldDefinition], values: dict[str, Any]) -> None:
    """
    Check resolved inputs against a recipe schema.

    Raises:
        RecipeValidationError: A required field is empty, or an object
            field lacks one of its required keys.
    """
    for f in schema:
        value = values.get(f.key)
        if f.required and not has_value(value):
            raise RecipeValidationError(f"Missing required input: {f.label or f.key}")

        if f.type == "object" and f.required_keys and value:
            if not isinstance(value, dict):
                raise RecipeValidationError(
                    f"Field '{f.key}' expects an object, got {type(value).__name__}"
                )
            missing = [k for k in f.required_keys if k not in value]
            if missing:
                raise RecipeValidationError(f"Field '{f.key}' missing keys: {', '.join(missing)}")


class RecipeExecutionPipeline:
    """
    Runs recipe nodes against one GraphEngine.

    Overlapping runs on the same node are not serialized; the last
    write wins.
    """

    def __init__(
        self,
        engine: GraphEngine,
        recipes: RecipeRegistry | None = None,
        providers: ProviderRegistry | None = None,
        notifier: Notifier | None = None,
        success_reset_delay: float | None = 2.0,
    ):
        self.engine = engine
        self.recipes = recipes if recipes is not None else get_recipe_registry()
        self.providers = providers
        self.notifier = notifier or LoggingNotifier()
        self.success_reset_delay = success_reset_delay

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    async def run(self, node_id: str, recipe_id: str | None = None) -> ExecutionOutcome:
        """Execute the recipe bound to `node_id`."""
        node = self.engine.get_node(node_id)
        if node is None:
            message = str(NodeNotFoundError(node_id))
            self.notifier.error(message)
            return ExecutionOutcome(node_id, recipe_id, ExecutionState.ERROR, error=message)

        recipe_id = recipe_id or recipe_id_of(node)
        if node.data.get("state") == ExecutionState.RUNNING.value:
            logger.warning("Node %s is already running; the later result will win", node_id)
        self._set_state(node_id, ExecutionState.RUNNING, error_message=None, execution_result=None)

        try:
            recipe = self._require_recipe(recipe_id)
            logger.info("Running recipe '%s' on node %s", recipe.id, node_id)

            self.engine.refresh_connected_inputs(node_id)
            inputs = self.resolve_inputs(node_id, recipe)
            validate_inputs(recipe.input_schema, inputs)

            result = await recipe.execute(self._context(node_id, recipe, inputs))
            if not result.success:
                raise RecipeExecutionError(result.error or "Execution failed")

            if node_id not in self.engine.graph:
                logger.warning("Node %s was removed while its recipe ran", node_id)
                return ExecutionOutcome(node_id, recipe.id, ExecutionState.IDLE, data=result.data)

            outcome = ExecutionOutcome(node_id, recipe.id, ExecutionState.SUCCESS, data=result.data)
            self._materialize(node_id, recipe, result, outcome)
        except asyncio.CancelledError:
            self._set_state(node_id, ExecutionState.IDLE)
            raise
        except SynniaError as e:
            return self._fail(node_id, recipe_id, str(e))
        except Exception as e:
            logger.exception("Recipe '%s' raised on node %s", recipe_id, node_id)
            return self._fail(node_id, recipe_id, str(e) or type(e).__name__)

        self._set_state(node_id, ExecutionState.SUCCESS)
        self.notifier.success(f"{recipe.name} completed")
        logger.info("Recipe '%s' finished on node %s", recipe.id, node_id)
        self._schedule_reset(node_id)
        return outcome

    def _require_recipe(self, recipe_id: str | None) -> RecipeDefinition:
        if not recipe_id:
            raise RecipeNotFoundError("Node is not bound to a recipe")
        recipe = self.recipes.get(recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(f"Recipe not found: {recipe_id}")
        return recipe

    def resolve_inputs(self, node_id: str, recipe: RecipeDefinition) -> dict[str, Any]:
        """Effective inputs: schema defaults overlaid with stored values."""
        asset = self.engine.get_asset_for(self.engine.require_node(node_id))
        stored = asset.value if asset is not None and isinstance(asset.value, dict) else {}
        return {**recipe.defaults(), **stored}

    def _context(self, node_id: str, recipe: RecipeDefinition, inputs: dict[str, Any]) -> ExecutionContext:
        node = self.engine.require_node(node_id)
        asset = self.engine.get_asset_for(node)
        config = asset.config if asset is not None else {}
        return ExecutionContext(
            inputs=inputs,
            node_id=node_id,
            node=node,
            engine=self.engine,
            manifest=recipe.manifest,
            chat_context=list((config.get("chat_context") or {}).get("messages") or []),
            model_config=dict(config.get("model_config") or {}),
            providers=self.providers,
            recipes=self.recipes,
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def _set_state(self, node_id: str, state: ExecutionState, **extra: Any) -> None:
        if node_id in self.engine.graph:
            self.engine.update_node(node_id, {"data": {"state": state.value, **extra}})

    def _fail(self, node_id: str, recipe_id: str | None, message: str) -> ExecutionOutcome:
        logger.warning("Recipe '%s' failed on node %s: %s", recipe_id, node_id, message)
        self._set_state(node_id, ExecutionState.ERROR, error_message=message)
        self.notifier.error(message)
        return ExecutionOutcome(node_id, recipe_id, ExecutionState.ERROR, error=message)

    def _schedule_reset(self, node_id: str) -> None:
        if self.success_reset_delay is None:
            return
        loop = asyncio.get_running_loop()
        loop.call_later(self.success_reset_delay, self._reset_to_idle, node_id)

    def _reset_to_idle(self, node_id: str) -> None:
        node = self.engine.get_node(node_id)
        # A newer run owns the state
        if node is not None and node.data.get("state") == ExecutionState.SUCCESS.value:
            self._set_state(node_id, ExecutionState.IDLE)

    # -------------------------------------------------------------------------
    # Materialize / reconcile
    # -------------------------------------------------------------------------

    def _materialize(
        self,
        node_id: str,
        recipe: RecipeDefinition,
        result: ExecutionResult,
        outcome: ExecutionOutcome,
    ) -> None:
        self.engine.update_node(node_id, {"data": {"execution_result": result.data}})

        specs = result.create_nodes
        output = recipe.manifest.output if recipe.manifest is not None else None
        if not specs and output is not None and has_value(result.data):
            specs = build_nodes_from_config(result.data, output, self.engine.node_types)

        if specs:
            self.reconcile(node_id, specs, outcome)

    def reconcile(self, node_id: str, specs: list[NodeSpec], outcome: ExecutionOutcome) -> None:
        """
        Apply node specs for a run.

        A single node spec updates the product already linked by an output
        edge; otherwise new nodes are created and the first one becomes
        the product.
        """
        products = self.engine.product_nodes(node_id)
        if products and len(specs) == 1:
            self._update_product(products[0], specs[0], outcome)
            return

        previous_output = self.engine.find_output_edges(node_id)
        prev_id: str | None = None
        try:
            for index, spec in enumerate(specs):
                recipe_node = self.engine.require_node(node_id)
                position = self._place(recipe_node, spec.position)

                docked_to = None
                if spec.docked_to == DOCK_PREVIOUS:
                    prev = self.engine.get_node(prev_id)
                    if prev is not None:
                        docked_to = prev.id
                        position = prev.position + Point2D(0.0, stack_height(prev))
                elif spec.docked_to:
                    docked_to = spec.docked_to

                created = self._create_from_spec(spec, position, docked_to)
                outcome.created_node_ids.append(created.id)

                if spec.connect_to:
                    self.engine.connect(
                        node_id,
                        spec.connect_to.get("source_handle"),
                        created.id,
                        spec.connect_to.get("target_handle"),
                    )
                elif index == 0:
                    self.engine.update_node(created.id, {"data": {"has_product_handle": True}})
                    self.engine.connect_output_edge(node_id, created.id)

                prev_id = created.id
        except SynniaError:
            self._rollback(node_id, outcome, previous_output)
            raise

        self.engine.fix_layout()

    def _rollback(self, node_id: str, outcome: ExecutionOutcome, previous_output: list[Edge]) -> None:
        """Drop the nodes a failed reconcile created and restore the old output edge."""
        self.engine.update_node(node_id, {"data": {"execution_result": None}})
        self.engine.delete_nodes(outcome.created_node_ids)
        outcome.created_node_ids.clear()
        for edge in previous_output:
            if edge.target in self.engine.graph and self.engine.graph.get_edge(edge.id) is None:
                self.engine.graph.add_edge(edge)

    def _place(self, recipe_node: Node, position: Any) -> Point2D:
        origin = recipe_node.position
        if position == POSITION_BELOW:
            return origin + Point2D(0.0, recipe_node.height + PRODUCT_GAP)
        if position == POSITION_RIGHT:
            return origin + Point2D(recipe_node.width + PRODUCT_GAP, 0.0)
        if position is not None:
            return Point2D.coerce(position)
        return Point2D(origin.x, origin.y)

    def _create_from_spec(self, spec: NodeSpec, position: Point2D, docked_to: str | None) -> Node:
        data = dict(spec.data)
        content = data.pop("content", None)
        raw_schema = data.pop("schema", None)
        schema = [
            f if isinstance(f, FieldDefinition) else FieldDefinition.from_dict(f)
            for f in raw_schema
        ] if raw_schema else None

        return self.engine.add_node(
            spec.type,
            position,
            content=content,
            schema=schema,
            asset_type=data.pop("asset_type", None),
            asset_name=data.pop("asset_name", None),
            asset_config=spec.asset_config,
            title=data.pop("title", None),
            collapsed=data.pop("collapsed", None),
            docked_to=docked_to,
            data=data,
            source="recipe",
        )

    def _update_product(self, product: Node, spec: NodeSpec, outcome: ExecutionOutcome) -> None:
        asset = self.engine.get_asset_for(product)
        if asset is None:
            logger.warning("Product node %s has no asset to update", product.id)
            return

        content = spec.data.get("content")
        definition = self.engine.node_types.get(product.type)
        if (
            definition is not None
            and definition.is_collection
            and definition.merge_items is not None
            and has_value(asset.value)
            and content is not None
        ):
            existing = definition.items_of(asset)
            if isinstance(content, list):
                incoming = content
            else:
                incoming = definition.items_of(dataclasses.replace(asset, value=content))
            self.engine.update_asset(asset.id, definition.merge_items(existing, incoming))
        elif has_value(content):
            self.engine.update_asset(asset.id, content)
        else:
            return
        outcome.updated_asset_id = asset.id
