"""
Built-in Python recipes.

- math.divide: A / B with validation
- text.concat: Join two texts with a separator
"""

from __future__ import annotations

import math

from synnia.core.assets import FieldDefinition
from synnia.core.connection import to_string
from synnia.recipes.types import ExecutionContext, ExecutionResult, RecipeDefinition
from synnia.recipes.utils import extract_number, extract_text


def _missing(value) -> bool:
    return value is None or value == ""


async def divide(ctx: ExecutionContext) -> ExecutionResult:
    a_in, b_in = ctx.inputs.get("a"), ctx.inputs.get("b")
    if _missing(a_in):
        return ExecutionResult.fail("Missing 'a'")
    if _missing(b_in):
        return ExecutionResult.fail("Missing 'b'")

    a, b = extract_number(a_in), extract_number(b_in)
    if math.isnan(a) or math.isnan(b):
        return ExecutionResult.fail("A and B must be valid numbers")
    if b == 0:
        return ExecutionResult.fail("Division by zero is not allowed")

    result = a / b
    a_txt, b_txt, r_txt = to_string(a), to_string(b), to_string(result)
    return ExecutionResult.ok({
        "expression": f"{a_txt} / {b_txt}",
        "result": result,
        "formatted": f"{a_txt} ÷ {b_txt} = {r_txt}",
    })


async def concat(ctx: ExecutionContext) -> ExecutionResult:
    separator = ctx.inputs.get("separator")
    separator = "\n\n" if separator is None else str(separator)
    merged = f"{extract_text(ctx.inputs.get('text1'))}{separator}{extract_text(ctx.inputs.get('text2'))}"
    return ExecutionResult.ok({"result": merged, "length": len(merged)})


DIVIDE_RECIPE = RecipeDefinition(
    id="math.divide",
    name="Division",
    description="Divides A by B (B ≠ 0)",
    category="Math",
    input_schema=[
        FieldDefinition(key="a", type="number", label="Dividend (A)", widget="number",
                        required=True, connection="input"),
        FieldDefinition(key="b", type="number", label="Divisor (B)", widget="number",
                        required=True, connection="input"),
    ],
    output_schema={"type": "json", "description": "Result of A / B"},
    execute=divide,
)

CONCAT_RECIPE = RecipeDefinition(
    id="text.concat",
    name="Concatenate",
    description="Joins two text inputs together",
    category="Text",
    input_schema=[
        FieldDefinition(key="text1", label="Text 1", widget="textarea", required=True, connection="input"),
        FieldDefinition(key="text2", label="Text 2", widget="textarea", required=True, connection="input"),
        FieldDefinition(key="separator", label="Separator", widget="text", default="\n\n"),
        FieldDefinition(key="result", label="Result", widget="none", connection="output"),
    ],
    output_schema={"type": "text", "description": "Concatenated text result"},
    execute=concat,
)

BUILTIN_RECIPES = (DIVIDE_RECIPE, CONCAT_RECIPE)
