# %% [markdown]
# # BmaForge Tutorial 1: BMA Models and Boolean Networks
#
# This tutorial introduces the BioModelAnalyzer (BMA) modelling language and
# shows how BMA models are translated into Boolean networks and back.
#
# ## What you will learn
# In this tutorial you will learn how to:
#
# - parse and evaluate BMA update functions,
# - build BMA networks and compute function tables,
# - convert Boolean BMA models into Boolean networks (and back).
#
# ---
# ## 0. Setup

# %%
import bmaforge


# %% [markdown]
# ---
# ## 1. BMA update functions
#
# In BMA, every variable has a discrete range of levels $[a, b]$ and a *target
# function*: an arithmetic expression over the levels of its regulators,
# written with integer constants, `var(ID)`, the operators `+ - * /`, and the
# functions `abs`, `ceil`, `floor`, `min`, `max` and `avg`.
#
# Expressions are parsed into immutable trees. Variables may be referenced by
# ID or, if a list of `(id, name)` pairs is supplied, by name.

# %%
f = bmaforge.UpdateFunction.parse("var(A) + (1 - min((var(B) + var(C)), 1))",
                                  [(1, "A"), (2, "B"), (3, "C")])
print("canonical form:", f)
print("height:", f.height)
print("variables:", f.collect_variables())
print("f(1, 0, 0) =", f.evaluate_raw({1: 1, 2: 0, 3: 0}))

# %% [markdown]
# Evaluation is exact: intermediate results are fractions, never floats.
# Malformed expressions raise `InvalidUpdateFunction`, which carries the
# position of the problem.

# %%
print(bmaforge.UpdateFunction.from_string("avg(1, 2, 2)").evaluate_raw({}))
try:
    bmaforge.UpdateFunction.from_string("max(1, 2")
except bmaforge.InvalidUpdateFunction as e:
    print(e)

# %% [markdown]
# ---
# ## 2. BMA networks and function tables
#
# Before a regulator level is plugged into a target function, BMA rescales it
# from the range of the regulator onto the range of the target. The result is
# then rounded (half away from zero) and truncated into the range of the
# target. A function table lists the resulting level for every combination of
# regulator levels.

# %%
variables = [
    bmaforge.BmaVariable(1, "A", (0, 2)),
    bmaforge.BmaVariable(2, "B", (0, 1)),
    bmaforge.BmaVariable(3, "C", (0, 4)),
]
relationships = [
    bmaforge.BmaRelationship.new_activator(1, 1, 3),
    bmaforge.BmaRelationship.new_inhibitor(2, 2, 3),
]
network = bmaforge.BmaNetwork(variables, relationships, name="toy")

# C has no formula, so BMA's default avg(activators) - avg(inhibitors) applies.
print("default function of C:", network.build_default_update_function(3))
print(network.build_function_table(3).to_dataframe())

# %% [markdown]
# ---
# ## 3. From BMA to Boolean networks
#
# If all ranges are within $[0, 1]$, every BMA function is a Boolean function.
# `BooleanNetwork.from_bma` computes the function table of every variable and
# minimizes it into a disjunctive normal form (using Espresso).

# %%
model = bmaforge.BmaModel.from_json_string("""
{
  "Model": {
    "Name": "toggle",
    "Variables": [
      {"Id": 1, "Name": "A", "RangeFrom": 0, "RangeTo": 1, "Formula": "1 - var(B)"},
      {"Id": 2, "Name": "B", "RangeFrom": 0, "RangeTo": 1, "Formula": ""},
      {"Id": 3, "Name": "C", "RangeFrom": 0, "RangeTo": 1,
       "Formula": "var(A) + (1 - min((var(B) + var(C)), 1))"}
    ],
    "Relationships": [
      {"Id": 1, "FromVariable": 2, "ToVariable": 1, "Type": "Inhibitor"},
      {"Id": 2, "FromVariable": 1, "ToVariable": 2, "Type": "Activator"},
      {"Id": 3, "FromVariable": 1, "ToVariable": 3, "Type": "Activator"},
      {"Id": 4, "FromVariable": 2, "ToVariable": 3, "Type": "Inhibitor"},
      {"Id": 5, "FromVariable": 3, "ToVariable": 3, "Type": "Activator"}
    ]
  }
}
""")
print("issues:", model.network.validate())

bn = bmaforge.BooleanNetwork.from_bma(model)
print(bn.to_bnet())

# %% [markdown]
# ---
# ## 4. From Boolean networks to BMA
#
# The reverse direction encodes every logical operator arithmetically, e.g.
# $A \lor B$ becomes $A + B - A \cdot B$, so that levels stay within $[0, 1]$.

# %%
bn = bmaforge.BooleanNetwork.from_bnet("""
targets, factors
x, !y
y, x | z
z, x & y
""")
model = bmaforge.BmaModel.from_boolean_network(bn)
for variable in model.network.variables:
    print(variable.name, "=", variable.formula)
print(model.to_json_string(pretty=True))

# %% [markdown]
# Models built this way get a default layout (all variables on a grid), so
# that they can be opened in BMA. Models can also be written in the older BMA
# XML format.

# %%
print(model.to_xml_string(pretty=True))
