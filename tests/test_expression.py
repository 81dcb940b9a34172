import itertools
from fractions import Fraction

import pytest

from bmaforge.errors import EvaluationError, ModelConversionError
from bmaforge.expression import AggregateFn, ArithOp, NodeKind, UnaryFn, UpdateFunction
from bmaforge.boolean_formula import BooleanFormula


c = UpdateFunction.mk_constant
v = UpdateFunction.mk_variable


def evaluate(formula, valuation=None):
    return UpdateFunction.from_string(formula).evaluate_raw(valuation or {})


# ------------------------------------------------------------
# 1 Tree structure
# ------------------------------------------------------------

def test_height_and_kind():
    tree = UpdateFunction.from_string("var(1) + max(2, abs(var(3)))")
    assert tree.kind == NodeKind.ARITHMETIC
    assert tree.height == 3
    assert c(1).height == 0
    assert UpdateFunction.mk_aggregation(AggregateFn.MIN, []).height == 1


def test_nodes_are_immutable():
    tree = c(1)
    with pytest.raises(AttributeError):
        tree.height = 5
    with pytest.raises(AttributeError):
        tree.children = ()


def test_subtrees_are_shared():
    shared = UpdateFunction.from_string("var(1) * var(2)")
    tree = UpdateFunction.mk_arithmetic(ArithOp.PLUS, shared, shared)
    assert tree.children[0] is tree.children[1]
    assert str(tree) == "((var(1) * var(2)) + (var(1) * var(2)))"


def test_equality_and_hash():
    assert UpdateFunction.from_string("1 + 2") == UpdateFunction.from_string("(1)+(2)")
    assert hash(UpdateFunction.from_string("1 + 2")) == hash(UpdateFunction.from_string("(1)+(2)"))
    assert UpdateFunction.from_string("1 + 2") != UpdateFunction.from_string("2 + 1")
    assert c(1) != v(1)


def test_as_constant():
    assert c(7).as_constant() == 7
    assert c(-2).as_constant() == -2
    assert v(7).as_constant() is None
    assert UpdateFunction.from_string("1 + 1").as_constant() is None


def test_collect_variables():
    tree = UpdateFunction.from_string("min(var(1), var(2) * var(1)) + ceil(var(5)) - 3")
    assert tree.collect_variables() == {1, 2, 5}
    assert c(3).collect_variables() == set()


# ------------------------------------------------------------
# 2 Exact evaluation
# ------------------------------------------------------------

def test_arithmetic():
    assert evaluate("3 + 5") == 8
    assert evaluate("2 * 5") == 10
    assert evaluate("1 - 3") == -2
    assert evaluate("1 / 3") == Fraction(1, 3)


def test_evaluation_is_exact():
    assert evaluate("1 / 3 + 1 / 3 + 1 / 3") == 1
    assert isinstance(evaluate("1 / 3"), Fraction)


def test_unary_functions():
    assert evaluate("abs(0 - 5)") == 5
    assert evaluate("ceil(7 / 2)") == 4
    assert evaluate("floor(7 / 2)") == 3
    assert evaluate("ceil(0 - 7 / 2)") == -3
    assert evaluate("floor(0 - 7 / 2)") == -4


def test_aggregations():
    assert evaluate("avg(1, 2, 4)") == Fraction(7, 3)
    assert evaluate("max(1, 4, 2)") == 4
    assert evaluate("min(3, 1, 2)") == 1


def test_variables():
    valuation = {1: Fraction(1, 2), 2: 3}
    assert evaluate("var(1) * var(2)", valuation) == Fraction(3, 2)


def test_missing_variable():
    with pytest.raises(EvaluationError) as info:
        evaluate("var(1) + var(2)", {1: 0})
    assert str(info.value) == "Missing input value for variable `2`"


def test_division_by_zero():
    with pytest.raises(EvaluationError) as info:
        evaluate("1 / (var(1) - 1)", {1: 1})
    assert str(info.value) == "Division by zero"


def test_empty_aggregation():
    tree = UpdateFunction.mk_aggregation(AggregateFn.AVG, [])
    assert str(tree) == "avg()"
    with pytest.raises(EvaluationError) as info:
        tree.evaluate_raw({})
    assert str(info.value) == "At least one argument is required for `avg`"


def test_evaluation_order():
    # Operands are evaluated left to right.
    with pytest.raises(EvaluationError) as info:
        evaluate("1 / 0 + var(2)")
    assert str(info.value) == "Division by zero"
    with pytest.raises(EvaluationError) as info:
        evaluate("var(2) + 1 / 0")
    assert str(info.value) == "Missing input value for variable `2`"


def test_long_chains():
    tree = UpdateFunction.from_string(" + ".join(["var(1)"] * 1200))
    assert tree.evaluate_raw({1: Fraction(1, 2)}) == 600
    assert tree.collect_variables() == {1}
    tree = UpdateFunction.from_string("min(" + ", ".join(f"var({i})" for i in range(300)) + ")")
    assert tree.evaluate_raw({i: i + 1 for i in range(300)}) == 1


# ------------------------------------------------------------
# 3 Boolean formulas to arithmetic
# ------------------------------------------------------------

NAMES = ['a', 'b', 'c']

BOOLEAN_FORMULAS = [
    "true",
    "false",
    "a",
    "!a",
    "a & b",
    "a | b",
    "a ^ b",
    "a <=> b",
    "a => b",
    "!(a & b) | c",
    "(a ^ b) <=> !c",
    "(a => b) => (b ^ (c | !a))",
    "((a <=> b) <=> c) & !(a | b)",
]


@pytest.mark.parametrize("text", BOOLEAN_FORMULAS)
def test_boolean_translation_stays_boolean(text):
    formula = BooleanFormula.parse(text, NAMES)
    expression = UpdateFunction.try_from_boolean_formula(formula)
    for values in itertools.product([0, 1], repeat=len(NAMES)):
        valuation = dict(enumerate(values))
        expected = 1 if formula.evaluate(valuation) else 0
        assert expression.evaluate_raw(valuation) == expected


def test_boolean_translation_rules():
    a, b = BooleanFormula.mk_var(1), BooleanFormula.mk_var(2)
    expected = {
        BooleanFormula.mk_not(a): "(1 - var(1))",
        BooleanFormula.parse("a & b", {'a': 1, 'b': 2}): "(var(1) * var(2))",
        BooleanFormula.parse("a | b", {'a': 1, 'b': 2}): "((var(1) + var(2)) - (var(1) * var(2)))",
        BooleanFormula.parse("a ^ b", {'a': 1, 'b': 2}): "((var(1) + var(2)) - (2 * (var(1) * var(2))))",
        BooleanFormula.parse("a <=> b", {'a': 1, 'b': 2}): "(1 - ((var(1) + var(2)) - (2 * (var(1) * var(2)))))",
        BooleanFormula.parse("a => b", {'a': 1, 'b': 2}): "((1 - var(1)) + (var(1) * var(2)))",
        BooleanFormula.mk_const(True): "1",
        b: "var(2)",
    }
    for formula, text in expected.items():
        assert str(UpdateFunction.try_from_boolean_formula(formula)) == text


def test_boolean_translation_rejects_parameters():
    formula = BooleanFormula.parse("a & f(b)", NAMES)
    with pytest.raises(ModelConversionError) as info:
        UpdateFunction.try_from_boolean_formula(formula)
    assert "unsupported parameters ['f']" in str(info.value)


def test_unary_fn_lookup():
    assert UnaryFn.try_from("floor") == UnaryFn.FLOOR
    assert UnaryFn.try_from("round") is None
    assert AggregateFn.try_from("avg") == AggregateFn.AVG
    assert ArithOp.try_from("%") is None
