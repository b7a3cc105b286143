"""
Expression evaluator for guard conditions written in machine definitions.
Supports comparison operators, logical operators, and simple arithmetic.
"""

import ast
import operator
from typing import Any, Callable, Dict, Mapping, Optional


class ExpressionEvaluator:
    """
    Safe expression evaluator for guard conditions.

    Supports:
    - Comparison: ==, !=, <, <=, >, >=
    - Logical: and, or, not
    - Arithmetic: +, -, *, /, %
    - Membership: in, not in
    - Variables: referenced as names (e.g., pending_approvals)
    - Constants: numbers, strings, booleans, None

    Examples:
    - "pending_approvals > 1"
    - "pending_approvals == 0 and invoice_number == None"
    - "not need_internal_approve"
    - "owner in ['alice', 'bob']"
    """

    # Allowed AST node types for safety
    ALLOWED_NODES = {
        ast.Expression,
        ast.Compare, ast.BoolOp, ast.UnaryOp, ast.BinOp,
        ast.Name, ast.Constant,
        ast.List, ast.Tuple, ast.Set,
        ast.Load, ast.And, ast.Or, ast.Not, ast.USub,
        ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE,
        ast.Add, ast.Sub, ast.Mult, ast.Div, ast.Mod,
        ast.In, ast.NotIn, ast.Is, ast.IsNot,
    }

    # Operator mappings
    OPERATORS = {
        ast.Add: operator.add,
        ast.Sub: operator.sub,
        ast.Mult: operator.mul,
        ast.Div: operator.truediv,
        ast.Mod: operator.mod,
        ast.Eq: operator.eq,
        ast.NotEq: operator.ne,
        ast.Lt: operator.lt,
        ast.LtE: operator.le,
        ast.Gt: operator.gt,
        ast.GtE: operator.ge,
        ast.Is: operator.is_,
        ast.IsNot: operator.is_not,
        ast.Not: operator.not_,
        ast.USub: operator.neg,
        ast.In: lambda x, y: x in y,
        ast.NotIn: lambda x, y: x not in y,
    }

    def __init__(self):
        self._cache: Dict[str, ast.Expression] = {}

    def compile(self, expression: str) -> ast.Expression:
        """
        Parse and validate an expression, caching the tree.

        Raises:
            ValueError: If expression is invalid or unsafe
        """
        if expression not in self._cache:
            try:
                tree = ast.parse(expression, mode='eval')
            except SyntaxError as e:
                raise ValueError(f"Invalid expression syntax: {e}")
            self._validate_ast(tree)
            self._cache[expression] = tree
        return self._cache[expression]

    def evaluate(self, expression: str, context: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Evaluate an expression with optional variable context.

        Args:
            expression: String expression to evaluate
            context: Mapping of variable names to values

        Returns:
            Result of expression evaluation

        Raises:
            ValueError: If expression is invalid or unsafe
            KeyError: If variable is not found in context
        """
        tree = self.compile(expression)
        return self._eval_node(tree.body, context or {})

    def _validate_ast(self, node: ast.AST):
        """Recursively validate AST nodes for safety"""
        for child in ast.walk(node):
            if type(child) not in self.ALLOWED_NODES:
                raise ValueError(f"Unsafe expression: {type(child).__name__} not allowed")

    def _eval_node(self, node: ast.AST, context: Mapping[str, Any]) -> Any:
        """Recursively evaluate AST node"""

        if isinstance(node, ast.Constant):
            return node.value

        elif isinstance(node, ast.Name):
            if node.id in context:
                return context[node.id]
            raise KeyError(f"Variable '{node.id}' not found in context")

        elif isinstance(node, ast.List):
            return [self._eval_node(elem, context) for elem in node.elts]
        elif isinstance(node, ast.Tuple):
            return tuple(self._eval_node(elem, context) for elem in node.elts)
        elif isinstance(node, ast.Set):
            return {self._eval_node(elem, context) for elem in node.elts}

        # Chained comparisons: a < b < c
        elif isinstance(node, ast.Compare):
            left = self._eval_node(node.left, context)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval_node(comparator, context)
                if not self.OPERATORS[type(op)](left, right):
                    return False
                left = right
            return True

        # Short-circuits like Python: later operands are not evaluated
        elif isinstance(node, ast.BoolOp):
            if isinstance(node.op, ast.And):
                result = True
                for value in node.values:
                    result = self._eval_node(value, context)
                    if not result:
                        break
                return result
            else:
                result = False
                for value in node.values:
                    result = self._eval_node(value, context)
                    if result:
                        break
                return result

        elif isinstance(node, ast.UnaryOp):
            operand = self._eval_node(node.operand, context)
            return self.OPERATORS[type(node.op)](operand)

        elif isinstance(node, ast.BinOp):
            left = self._eval_node(node.left, context)
            right = self._eval_node(node.right, context)
            return self.OPERATORS[type(node.op)](left, right)

        else:
            raise ValueError(f"Unsupported node type: {type(node).__name__}")


def condition_guard(expression: str,
                    context: Callable[[], Mapping[str, Any]],
                    evaluator: Optional[ExpressionEvaluator] = None) -> Callable[[], bool]:
    """
    Build a guard predicate from a condition expression.

    The expression is validated immediately; ``context`` is called on every
    evaluation so the guard always sees live values.
    """
    evaluator = evaluator or ExpressionEvaluator()
    evaluator.compile(expression)

    def predicate() -> bool:
        return bool(evaluator.evaluate(expression, context()))

    predicate.__name__ = expression
    return predicate
