from __future__ import annotations
import ast
from typing import Dict, Tuple, List

_ALLOWED_NAMES = {"H", "W"}
_ALLOWED_BINOPS = (ast.Add, ast.Sub, ast.Mult, ast.FloorDiv)


class ShapeExprError(ValueError):
    pass


def _eval_node(node: ast.AST, vars: Dict[str, int]) -> int:
    if isinstance(node, ast.Constant) and isinstance(node.value, int):
        return int(node.value)
    if isinstance(node, ast.Name):
        if node.id not in _ALLOWED_NAMES:
            raise ShapeExprError(f"Unknown name '{node.id}' in shape_expr.")
        if node.id not in vars:
            raise ShapeExprError(
                f"Variable '{node.id}' not provided for shape_expr.")
        return int(vars[node.id])
    if isinstance(node, ast.BinOp) and isinstance(node.op, _ALLOWED_BINOPS):
        left = _eval_node(node.left, vars)
        right = _eval_node(node.right, vars)
        if isinstance(node.op, ast.Add): return left + right
        if isinstance(node.op, ast.Sub): return left - right
        if isinstance(node.op, ast.Mult): return left * right
        if right == 0:
            raise ShapeExprError("Division by zero in shape_expr.")
        return left // right
    raise ShapeExprError(
        f"Unsupported expression node: {ast.dump(node, include_attributes=False)}")


def eval_shape_expr(expr: str, vars: Dict[str, int]) -> Tuple[int, ...]:
    """
    Evaluate a buffer shape expression such as "H, W" or "H, W, 4".
    Every dimension must come out positive.
    """
    dims: List[int] = []
    for part in expr.split(","):
        sub = part.strip()
        if not sub:
            raise ShapeExprError("Empty sub-expression in shape_expr.")
        try:
            node = ast.parse(sub, mode="eval").body
        except SyntaxError as e:
            raise ShapeExprError(f"Failed to parse shape_expr '{expr}': {e}")
        val = _eval_node(node, vars)
        if val <= 0:
            raise ShapeExprError(
                f"Dimension '{sub}' -> {val} (must be > 0).")
        dims.append(val)
    return tuple(dims)


def shape_matches(expr: str, shape: Tuple[int, ...], vars: Dict[str, int]) -> bool:
    """True when an array shape equals the evaluated expression."""
    return tuple(int(d) for d in shape) == eval_shape_expr(expr, vars)
