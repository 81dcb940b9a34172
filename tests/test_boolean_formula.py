import pytest

from bmaforge.errors import EvaluationError, ParseError
from bmaforge.boolean_formula import BinaryOp, BooleanFormula, FormulaKind


NAMES = ['a', 'b', 'c']


def parse(text):
    return BooleanFormula.parse(text, NAMES)


def parse_error(text):
    with pytest.raises(ParseError) as info:
        parse(text)
    return info.value


# ------------------------------------------------------------
# 1 Parsing and printing
# ------------------------------------------------------------

def test_structure():
    a, b = BooleanFormula.mk_var(0), BooleanFormula.mk_var(1)
    assert parse("a & b") == BooleanFormula.mk_binary(BinaryOp.AND, a, b)
    assert parse("!a") == BooleanFormula.mk_not(a)
    assert parse("~a") == BooleanFormula.mk_not(a)
    assert parse("true") == BooleanFormula.mk_const(True)
    assert parse("0") == BooleanFormula.mk_const(False)


@pytest.mark.parametrize("text,expected", [
    ("a | b & c", "a | (b & c)"),
    ("a ^ b | c", "(a ^ b) | c"),
    ("a & b ^ c", "(a & b) ^ c"),
    ("a => b => c", "a => (b => c)"),
    ("a <=> b => c", "a <=> (b => c)"),
    ("a | b | c", "(a | b) | c"),
    ("!(a & b) | c", "!(a & b) | c"),
    ("!!a", "!!a"),
    ("(((a)))", "a"),
])
def test_precedence(text, expected):
    assert parse(text).to_string(NAMES) == expected


def test_default_variable_names():
    assert str(parse("a | b & c")) == "x0 | (x1 & x2)"


def test_variable_map():
    assert BooleanFormula.parse("x & y", {'x': 5, 'y': 7}).collect_variables() == {5, 7}


def test_bnet_dialect():
    assert parse("a ^ b").to_string(NAMES, BNET=True) == "(a & !b) | (!a & b)"
    assert parse("a => b").to_string(NAMES, BNET=True) == "!a | b"
    assert parse("a <=> b").to_string(NAMES, BNET=True) == "(a & b) | (!a & !b)"
    assert parse("a & true").to_string(NAMES, BNET=True) == "a & 1"


def test_parameters():
    formula = parse("f(a, b) | c")
    assert formula.collect_parameters() == {'f'}
    assert formula.collect_variables() == {0, 1, 2}
    assert formula.to_string(NAMES) == "f(a, b) | c"
    assert parse("g()").kind == FormulaKind.PARAM
    with pytest.raises(ValueError):
        formula.to_string(NAMES, BNET=True)


@pytest.mark.parametrize("text,message,position", [
    ("", "Expression is empty", 0),
    ("a & ", "Unexpected end of input", 4),
    ("a & d", "Unknown variable `d`", 4),
    ("a $ b", "Unexpected `$`", 2),
    ("a b", "Unexpected `b`", 2),
    ("(a", "Expected `)`, found end of input", 2),
    ("f(a b)", "Expected `,` or `)`, found `b`", 4),
])
def test_parse_errors(text, message, position):
    error = parse_error(text)
    assert (error.message, error.position) == (message, position)


# ------------------------------------------------------------
# 2 Construction and evaluation
# ------------------------------------------------------------

def test_conjunction_and_disjunction():
    literals = [BooleanFormula.mk_literal(0), BooleanFormula.mk_literal(1, positive=False)]
    assert BooleanFormula.mk_conjunction([]) == BooleanFormula.mk_const(True)
    assert BooleanFormula.mk_disjunction([]) == BooleanFormula.mk_const(False)
    assert BooleanFormula.mk_conjunction(literals).to_string(NAMES) == "a & !b"
    assert BooleanFormula.mk_disjunction(literals + [BooleanFormula.mk_var(2)]).to_string(NAMES) == "(a | !b) | c"
    assert BooleanFormula.mk_disjunction(literals[:1]) == literals[0]


def test_evaluate():
    formula = parse("(a => b) & !(b ^ c)")
    assert formula.evaluate([True, True, True])
    assert not formula.evaluate([True, False, False])
    assert formula.evaluate({0: False, 1: False, 2: False})
    assert parse("a <=> b").evaluate([1, 1, 0])


def test_evaluate_errors():
    with pytest.raises(EvaluationError, match="Missing input value for variable `2`"):
        parse("a & c").evaluate({0: True})
    with pytest.raises(EvaluationError):
        parse("f(a)").evaluate([True, True, True])


def test_queries():
    assert parse("true").as_const() is True
    assert parse("a").as_const() is None
    assert parse("a & !a").collect_parameters() == set()


def test_immutable_and_hashable():
    formula = parse("a & b")
    with pytest.raises(AttributeError):
        formula.op = BinaryOp.OR
    assert len({parse("a & b"), parse("(a) & (b)"), parse("b & a")}) == 2
