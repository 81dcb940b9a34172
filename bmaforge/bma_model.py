#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
BMA models: a :class:`~bmaforge.BmaNetwork` plus its layout, with JSON and
XML I/O and the conversion of update functions into Boolean formulas.

@author: bmaforge developers
"""

import json
import math
import warnings
import xml.etree.ElementTree as ET

from pyeda.inter import exprvar, Or, And, espresso_exprs
from pyeda.boolalg.expr import OrOp, AndOp, Complement, Variable

from typing import Optional, Union
from collections.abc import Mapping

from bmaforge.errors import EvaluationError, InvalidUpdateFunction, ModelConversionError
from bmaforge.expression import UpdateFunction
from bmaforge.boolean_formula import BooleanFormula
from bmaforge.bma_network import BmaNetwork, BmaRelationship, BmaVariable, RelationshipType
from bmaforge.regulatory_graph import Monotonicity
from bmaforge.utils import take_if_not_blank

__all__ = [
    "BmaModel",
]

# Spacing of the grid used for layouts of models built from Boolean networks.
DEFAULT_LAYOUT_SPACING = 75

_LAYOUT_VARIABLE_FIELDS = ('Type', 'PositionX', 'PositionY', 'Angle', 'ContainerId', 'CellX', 'CellY')


def _field(data : Mapping, *keys, default = KeyError):
    """Value of the first of ``keys`` present in ``data``."""
    for key in keys:
        if key in data:
            return data[key]
    if default is KeyError:
        raise ValueError(f"Missing field `{keys[0]}` in BMA JSON")
    return default


def _xml_field(element, *keys, default = KeyError):
    """
    Value of the first of ``keys`` found in ``element``, either as an
    attribute or as the text of a child tag (BMA writes both forms).
    """
    for key in keys:
        if key in element.attrib:
            return element.attrib[key]
        child = element.find(key)
        if child is not None:
            return child.text if child.text is not None else ''
    if default is KeyError:
        raise ValueError(f"Missing field `{keys[0]}` in BMA XML element `{element.tag}`")
    return default


def _quoted_number(value) -> int:
    """BMA files sometimes store numbers as strings (``"32"`` instead of ``32``)."""
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, found `{value}`")
    if isinstance(value, str):
        value = value.strip().strip('"')
    number = int(value)
    if number < 0:
        raise ValueError(f"Expected a non-negative number, found `{number}`")
    return number


def _optional_number(value) -> Optional[int]:
    if value is None or str(value).strip() == '':
        return None
    return _quoted_number(value)


def _decimal(value) -> float:
    if value is None or str(value).strip() == '':
        return 0.0
    return float(value)


def _read_network(name : str, variables : list, relationships : list) -> BmaNetwork:
    """
    Build a network from raw ``(id, name, range, formula)`` variable records.

    A ``var(name)`` reference is resolved against the names of the
    regulators of the variable only, so the same name may appear in several
    places of a model (e.g. one protein in several cells). A formula that
    cannot be parsed is kept as an :class:`InvalidUpdateFunction`.
    """
    names = {var_id : var_name for (var_id, var_name, _, _) in variables if var_name is not None}
    regulators = {}
    for relationship in relationships:
        regulators.setdefault(relationship.to_variable, set()).add(relationship.from_variable)

    result = []
    for (var_id, var_name, var_range, formula_text) in variables:
        regulators_of_var = regulators.get(var_id, set())
        variable_id_hint = [(i, n) for (i, n) in sorted(names.items()) if i in regulators_of_var]
        try:
            formula = UpdateFunction.parse_optional(formula_text, variable_id_hint)
        except InvalidUpdateFunction as e:
            formula = e
        result.append(BmaVariable(var_id, var_name, var_range, formula))
    return BmaNetwork(result, relationships, name)


def _default_layout(variables : list) -> dict:
    """
    A single default container with every variable placed on a square grid.
    BMA refuses to import models without non-zero layout positions.
    """
    side = math.isqrt(len(variables))
    layout_variables = []
    for i, variable in enumerate(variables):
        x, y = divmod(i, side)
        layout_variables.append({
            'Id': variable.id,
            'Name': variable.name if variable.name is not None else '',
            'Type': 'Default',
            'ContainerId': 0,
            'PositionX': DEFAULT_LAYOUT_SPACING * (x + 1),
            'PositionY': DEFAULT_LAYOUT_SPACING * (y + 1),
            'Angle': 0,
            'Description': '',
        })
    return {
        'Variables': layout_variables,
        'Containers': [{'Id': 0, 'Name': 'Default', 'Size': 1, 'PositionX': 0, 'PositionY': 0}],
        'Description': '',
    }


def _text_element(parent, tag : str, value):
    element = ET.SubElement(parent, tag)
    element.text = str(value)
    return element


class BmaModel(object):
    """
    A BMA model.

    **Members:**

        - network (BmaNetwork): Variables and relationships.
        - layout (dict | None): The layout section in the shape of the JSON
          file (positions, containers, descriptions). It is kept so that
          models can be written back, but is not interpreted beyond
          variable names.
        - metadata (dict[str, str]): Extra information found in XML files
          (``biocheck_version``, ``created_date``, ``modified_date``).
    """

    __slots__ = ['network', 'layout', 'metadata']

    def __init__(self, network : Optional[BmaNetwork] = None, layout : Optional[dict] = None,
                 metadata : Optional[dict] = None):
        self.network = network if network is not None else BmaNetwork()
        self.layout = layout
        self.metadata = dict(metadata) if metadata is not None else {}

    def __eq__(self, other):
        return (isinstance(other, BmaModel) and self.network == other.network
                and self.layout == other.layout and self.metadata == other.metadata)

    def __repr__(self):
        return f"BmaModel({self.network!r})"

    # Queries

    def get_max_var_level(self) -> int:
        """Largest level (lower or upper bound) of any variable, 0 for an empty model."""
        return max((max(v.range) for v in self.network.variables), default=0)

    def is_boolean(self) -> bool:
        return self.get_max_var_level() <= 1

    # JSON

    @classmethod
    def from_json_string(cls, json_string : str) -> "BmaModel":
        """
        Read a model from the BMA JSON format.

        Both the capitalized (``Model``, ``Variables``, ``RangeFrom``...) and
        lower-case field names are accepted, as are numbers stored as
        strings. Variable names missing from the network are taken from the
        layout. Formulas may reference variables by ID or by the name of one
        of their regulators; a formula that cannot be parsed is kept as an
        :class:`InvalidUpdateFunction`.

        **Parameters:**

            - json_string (str): The JSON document.

        **Returns:**

            - BmaModel: The model.

        **Raises:**

            - ValueError: If the document is not valid JSON or misses a
              required field.
        """
        data = json.loads(json_string)
        model_data = _field(data, 'Model', 'model')
        layout = _field(data, 'Layout', 'layout', default=None)

        layout_names = {}
        if layout is not None:
            for item in _field(layout, 'Variables', 'variables', default=[]):
                name = take_if_not_blank(_field(item, 'Name', 'name', default=None))
                if name is not None:
                    layout_names.setdefault(_quoted_number(_field(item, 'Id', 'id')), name)

        relationships = []
        for item in _field(model_data, 'Relationships', 'relationships', default=[]):
            relationships.append(BmaRelationship(
                _quoted_number(_field(item, 'Id', 'id')),
                _quoted_number(_field(item, 'FromVariable', 'fromVariable', 'FromVariableId', 'fromVariableId')),
                _quoted_number(_field(item, 'ToVariable', 'toVariable', 'ToVariableId', 'toVariableId')),
                RelationshipType.from_string(_field(item, 'Type', 'type')),
            ))

        variables = []
        for item in _field(model_data, 'Variables', 'variables'):
            var_id = _quoted_number(_field(item, 'Id', 'id'))
            name = take_if_not_blank(_field(item, 'Name', 'name', default=None))
            if name is None:
                name = layout_names.get(var_id)
            var_range = (_quoted_number(_field(item, 'RangeFrom', 'rangeFrom')),
                         _quoted_number(_field(item, 'RangeTo', 'rangeTo')))
            variables.append((var_id, name, var_range, _field(item, 'Formula', 'formula', default='')))

        network = _read_network(_field(model_data, 'Name', 'name', default='') or '', variables, relationships)
        return cls(network, layout)

    def to_json_string(self, pretty : bool = False) -> str:
        """
        Write the model in the BMA JSON format. Valid formulas are written in
        canonical form, invalid ones as originally written.
        """
        data = {
            'Model': {
                'Name': self.network.name,
                'Variables': [
                    {
                        'Id': v.id,
                        'Name': v.name if v.name is not None else '',
                        'RangeFrom': v.min_level(),
                        'RangeTo': v.max_level(),
                        'Formula': v.formula_string(),
                    }
                    for v in self.network.variables
                ],
                'Relationships': [
                    {
                        'Id': r.id,
                        'FromVariable': r.from_variable,
                        'ToVariable': r.to_variable,
                        'Type': str(r.type),
                    }
                    for r in self.network.relationships
                ],
            },
        }
        if self.layout is not None:
            data['Layout'] = self.layout
        if pretty:
            return json.dumps(data, indent=2)
        return json.dumps(data)

    # XML

    @classmethod
    def from_xml_string(cls, xml_string : str) -> "BmaModel":
        """
        Read a model from the (older) BMA XML format.

        The XML format stores layout information (positions, containers)
        directly with the variables; it is collected into :attr:`layout` in
        the shape of the JSON layout section. IDs and names may be given as
        attributes or as child tags, ``Function`` is accepted for
        ``Formula`` and ``ModelName`` for ``Name``. Formulas are parsed with
        the same rules as in :meth:`from_json_string`.

        **Parameters:**

            - xml_string (str): The XML document.

        **Returns:**

            - BmaModel: The model.

        **Raises:**

            - ValueError: If the document is not well-formed XML or misses a
              required field.
        """
        try:
            root = ET.fromstring(xml_string)
        except ET.ParseError as e:
            raise ValueError(f"Invalid BMA XML: {e}") from e

        relationships = []
        for item in root.findall('Relationships/Relationship'):
            relationships.append(BmaRelationship(
                _quoted_number(_xml_field(item, 'Id')),
                _quoted_number(_xml_field(item, 'FromVariableId', 'FromVariable')),
                _quoted_number(_xml_field(item, 'ToVariableId', 'ToVariable')),
                RelationshipType.from_string(_xml_field(item, 'Type')),
            ))

        variables = []
        layout_variables = []
        for item in root.findall('Variables/Variable'):
            var_id = _quoted_number(_xml_field(item, 'Id'))
            name = _xml_field(item, 'Name', default='') or ''
            var_range = (_quoted_number(_xml_field(item, 'RangeFrom')),
                         _quoted_number(_xml_field(item, 'RangeTo')))
            variables.append((var_id, take_if_not_blank(name), var_range,
                              _xml_field(item, 'Formula', 'Function', default='')))
            layout_variable = {
                'Id': var_id,
                'Name': name,
                'Type': _xml_field(item, 'Type', default=None) or 'Default',
                'ContainerId': _optional_number(_xml_field(item, 'ContainerId', default=None)),
                'PositionX': _decimal(_xml_field(item, 'PositionX', default=None)),
                'PositionY': _decimal(_xml_field(item, 'PositionY', default=None)),
                'CellX': _optional_number(_xml_field(item, 'CellX', default=None)),
                'CellY': _optional_number(_xml_field(item, 'CellY', default=None)),
                'Angle': _decimal(_xml_field(item, 'Angle', default=None)),
                'Description': '',
            }
            layout_variables.append({k : v for (k, v) in layout_variable.items() if v is not None})

        containers = []
        for item in root.findall('Containers/Container'):
            containers.append({
                'Id': _quoted_number(_xml_field(item, 'Id')),
                'Name': _xml_field(item, 'Name', default='') or '',
                'Size': _quoted_number(_xml_field(item, 'Size')),
                'PositionX': _decimal(_xml_field(item, 'PositionX')),
                'PositionY': _decimal(_xml_field(item, 'PositionY')),
            })

        layout = {
            'Variables': layout_variables,
            'Containers': containers,
            'Description': _xml_field(root, 'Description', default='') or '',
        }
        layout_element = root.find('Layout')
        if layout_element is not None:
            for key in ('ZoomLevel', 'PanX', 'PanY'):
                layout[key] = _decimal(_xml_field(layout_element, key, default=None))

        metadata = {}
        for key, tag in (('biocheck_version', 'BioCheckVersion'), ('created_date', 'CreatedDate'),
                         ('modified_date', 'ModifiedDate')):
            value = _xml_field(root, tag, default=None)
            if value is not None:
                metadata[key] = value

        name = _xml_field(root, 'Name', 'ModelName', default='') or ''
        return cls(_read_network(name, variables, relationships), layout, metadata)

    def to_xml_string(self, pretty : bool = False) -> str:
        """
        Write the model in the BMA XML format. Layout information of a
        variable (position, container, cell) is written next to its
        functional data when :attr:`layout` has an entry for it.
        """
        layout = self.layout if self.layout is not None else {}
        layout_by_id = {}
        for item in _field(layout, 'Variables', 'variables', default=[]):
            layout_by_id.setdefault(_quoted_number(_field(item, 'Id', 'id')), item)

        attributes = {'Name': self.network.name}
        if 'biocheck_version' in self.metadata:
            attributes['BioCheckVersion'] = self.metadata['biocheck_version']
        root = ET.Element('Model', attributes)
        _text_element(root, 'Description', _field(layout, 'Description', 'description', default=''))
        for key, tag in (('created_date', 'CreatedDate'), ('modified_date', 'ModifiedDate')):
            if key in self.metadata:
                _text_element(root, tag, self.metadata[key])

        variables = ET.SubElement(root, 'Variables')
        for v in self.network.variables:
            element = ET.SubElement(variables, 'Variable', {'Id': str(v.id), 'Name': v.name if v.name is not None else ''})
            _text_element(element, 'RangeFrom', v.min_level())
            _text_element(element, 'RangeTo', v.max_level())
            _text_element(element, 'Formula', v.formula_string())
            item = layout_by_id.get(v.id, {})
            for key in _LAYOUT_VARIABLE_FIELDS:
                value = _field(item, key, key[0].lower() + key[1:], default=None)
                if value is not None:
                    _text_element(element, key, value)

        relationships = ET.SubElement(root, 'Relationships')
        for r in self.network.relationships:
            element = ET.SubElement(relationships, 'Relationship', {'Id': str(r.id)})
            _text_element(element, 'FromVariableId', r.from_variable)
            _text_element(element, 'ToVariableId', r.to_variable)
            _text_element(element, 'Type', r.type)

        containers = ET.SubElement(root, 'Containers')
        for item in _field(layout, 'Containers', 'containers', default=[]):
            element = ET.SubElement(containers, 'Container', {
                'Id': str(_field(item, 'Id', 'id')),
                'Name': _field(item, 'Name', 'name', default='') or '',
            })
            _text_element(element, 'PositionX', _field(item, 'PositionX', 'positionX', default=0))
            _text_element(element, 'PositionY', _field(item, 'PositionY', 'positionY', default=0))
            _text_element(element, 'Size', _field(item, 'Size', 'size', default=1))

        if any(key in layout for key in ('ZoomLevel', 'PanX', 'PanY')):
            element = ET.SubElement(root, 'Layout')
            _text_element(element, 'Columns', 1)
            _text_element(element, 'Rows', 1)
            for key in ('ZoomLevel', 'PanX', 'PanY'):
                _text_element(element, key, layout.get(key, 0.0))

        if pretty:
            ET.indent(root, space="  ")
        return ET.tostring(root, encoding='unicode')

    # Boolean conversion

    def convert_function_to_aeon(self, target_var : Union[BmaVariable, int], id_map : Mapping,
                                 MINIMIZE_EXPRESSION : bool = True) -> BooleanFormula:
        """
        Convert the update function of a Boolean variable into an equivalent
        Boolean formula in disjunctive normal form.

        The function table over the declared regulators (see
        :meth:`BmaNetwork.build_function_table`) is turned into one minterm
        per row with output 1, and the disjunction of these minterms is
        minimized with Espresso.

        **Parameters:**

            - target_var (BmaVariable | int): The variable (or its ID).
            - id_map (dict[int, int]): Maps BMA variable IDs to Boolean
              network variable indices.
            - MINIMIZE_EXPRESSION (bool, optional): Whether to minimize the
              DNF using Espresso. If false, the full minterm DNF is
              returned. Defaults to true.

        **Returns:**

            - BooleanFormula: Disjunction of conjunctions of literals over the
              mapped regulators; ``false`` if no row evaluates to 1 and
              ``true`` if every row does.

        **Raises:**

            - ModelConversionError: If the formula is invalid, uses variables
              that are not declared regulators, a regulator is missing from
              ``id_map``, evaluation fails, or the table is not Boolean.
        """
        network = self.network
        if not isinstance(target_var, BmaVariable):
            var_id = target_var
            target_var = network.find_variable(var_id)
            if target_var is None:
                raise ModelConversionError(f"Target variable with id `{var_id}` not found")

        if isinstance(target_var.formula, InvalidUpdateFunction):
            raise ModelConversionError(str(target_var.formula)) from target_var.formula
        function = target_var.formula
        if function is None:
            function = network.build_default_update_function(target_var.id)

        regulators = sorted(network.get_regulators(target_var.id))
        undeclared = function.collect_variables() - set(regulators)
        if len(undeclared) > 0:
            raise ModelConversionError(f"Update function of variable `{target_var.id}` uses variables "
                                       f"{sorted(undeclared)} that are not its regulators")
        for reg_id in regulators:
            if reg_id not in id_map:
                raise ModelConversionError(f"Missing Boolean network variable for BMA id `{reg_id}`")

        for variable in [target_var] + [network.find_variable(r) for r in regulators]:
            if variable is not None and (variable.min_level() < 0 or variable.max_level() > 1):
                raise ModelConversionError("Value is not binary")

        try:
            table = network.build_function_table(target_var.id)
        except EvaluationError as e:
            raise ModelConversionError(str(e)) from e

        minterms = []
        for (valuation, output) in table:
            if output not in (0, 1) or any(level not in (0, 1) for level in valuation.values()):
                raise ModelConversionError("Value is not binary")
            if output == 1:
                minterms.append([valuation[r] for r in regulators])

        if len(minterms) == 0:
            return BooleanFormula.mk_const(False)
        if len(minterms) == len(table):
            return BooleanFormula.mk_const(True)

        if not MINIMIZE_EXPRESSION:
            clauses = [[(id_map[r], bool(bit)) for r, bit in zip(regulators, m)] for m in minterms]
        else:
            clauses = _espresso_clauses(regulators, minterms, id_map)
        return BooleanFormula.mk_disjunction([
            BooleanFormula.mk_conjunction([BooleanFormula.mk_literal(i, positive) for (i, positive) in clause])
            for clause in clauses
        ])

    @classmethod
    def from_boolean_network(cls, bn) -> "BmaModel":
        """
        Build a Boolean BMA model from a Boolean network.

        Variable IDs are the network indices, ranges are ``(0, 1)`` and every
        update formula is translated by
        :meth:`UpdateFunction.try_from_boolean_formula`. Regulations become
        relationships sorted by ``(source, target)``: inhibitions are
        inhibitors, everything else is an activator. The model gets a default
        layout: one container and the variables on a square grid.

        **Parameters:**

            - bn (BooleanNetwork): The network.

        **Returns:**

            - BmaModel: The model.

        **Raises:**

            - ModelConversionError: If the network has parameters, either
              explicit (uninterpreted functions) or implicit (variables
              without an update formula).
        """
        parameters = bn.parameters()
        if len(parameters) > 0:
            raise ModelConversionError(f"Cannot transform Boolean network with explicit parameters ({sorted(parameters)})")
        implicit = bn.implicit_parameters()
        if len(implicit) > 0:
            names = [bn.variables[i] for i in implicit]
            raise ModelConversionError(f"Cannot transform Boolean network with implicit parameters ({names})")

        variables = []
        for i, name in enumerate(bn.variables):
            formula = UpdateFunction.try_from_boolean_formula(bn.get_update_function(i))
            variables.append(BmaVariable(i, name, (0, 1), formula))

        relationships = []
        for (source, target, monotonicity, _observable) in bn.graph.regulations():
            if monotonicity == Monotonicity.INHIBITION:
                relationship_type = RelationshipType.INHIBITOR
            else:
                if monotonicity is None:
                    warnings.warn(f"Regulation {bn.variables[source]} -> {bn.variables[target]} has no sign; "
                                  "it is translated as an activator.", UserWarning, stacklevel=2)
                relationship_type = RelationshipType.ACTIVATOR
            relationships.append(BmaRelationship(len(relationships), source, target, relationship_type))

        return cls(BmaNetwork(variables, relationships), _default_layout(variables))


def _espresso_clauses(regulators : list, minterms : list, id_map : Mapping) -> list:
    """
    Minimize a DNF given by ``minterms`` over ``regulators`` and return its
    clauses as lists of ``(variable index, positive)`` literals.
    """
    variables = [exprvar(f"x{i}") for i in range(len(regulators))]
    index_by_name = {str(var): id_map[r] for var, r in zip(variables, regulators)}

    terms = []
    for m in minterms:
        bits = [(variables[i] if m[i] else ~variables[i]) for i in range(len(regulators))]
        terms.append(And(*bits))
    func_expr = Or(*terms).to_dnf()
    func_expr, = espresso_exprs(func_expr)

    def __literal__(e):
        if isinstance(e, Complement):
            return (index_by_name[str(e)[1:]], False)
        assert isinstance(e, Variable), f"Unexpected literal {e} in minimized DNF"
        return (index_by_name[str(e)], True)

    def __clause__(e):
        if isinstance(e, AndOp):
            return sorted(__literal__(arg) for arg in e.xs)
        return [__literal__(e)]

    if isinstance(func_expr, OrOp):
        clauses = [__clause__(arg) for arg in func_expr.xs]
    else:
        clauses = [__clause__(func_expr)]
    return sorted(clauses)
