import json

import pytest

from bmaforge.errors import InvalidUpdateFunction
from bmaforge.expression import UpdateFunction
from bmaforge.bma_network import BmaNetwork, BmaRelationship, BmaVariable, RelationshipType
from bmaforge.bma_model import BmaModel


MODEL_JSON = """
{
  "Model": {
    "Name": "toy",
    "Variables": [
      {"Id": "1", "Name": "a", "RangeFrom": 0, "RangeTo": "1", "Formula": ""},
      {"Id": 2, "Name": "b", "RangeFrom": 0, "RangeTo": 1, "Formula": "var(a)"},
      {"Id": 3, "Name": "", "RangeFrom": 0, "RangeTo": 2, "Formula": "var(a) + var(IL-6)"}
    ],
    "Relationships": [
      {"Id": 4, "FromVariable": 1, "ToVariable": 2, "Type": "Activator"},
      {"Id": 5, "FromVariable": "1", "ToVariable": 3, "Type": "Activator"},
      {"Id": 6, "FromVariable": 3, "ToVariable": 3, "Type": "Inhibitor"}
    ]
  },
  "Layout": {
    "Variables": [
      {"Id": 3, "Name": "IL-6", "PositionX": 120.5, "PositionY": 40.0}
    ]
  }
}
"""


def test_read_model():
    model = BmaModel.from_json_string(MODEL_JSON)
    network = model.network
    assert network.name == "toy"
    assert [v.id for v in network.variables] == [1, 2, 3]
    assert [v.name for v in network.variables] == ["a", "b", "IL-6"]
    assert [v.range for v in network.variables] == [(0, 1), (0, 1), (0, 2)]
    assert network.variables[0].formula is None
    assert network.variables[1].formula == UpdateFunction.mk_variable(1)
    assert str(network.variables[2].formula) == "(var(1) + var(3))"
    assert network.relationships == [
        BmaRelationship(4, 1, 2, RelationshipType.ACTIVATOR),
        BmaRelationship(5, 1, 3, RelationshipType.ACTIVATOR),
        BmaRelationship(6, 3, 3, RelationshipType.INHIBITOR),
    ]
    assert model.layout["Variables"][0]["PositionX"] == 120.5
    assert model.get_max_var_level() == 2
    assert not model.is_boolean()


def test_read_lower_case_fields():
    document = {
        "model": {
            "name": "lower",
            "variables": [
                {"id": 1, "name": "x", "rangeFrom": 0, "rangeTo": 1, "formula": "1 - var(x)"},
            ],
            "relationships": [
                {"id": 1, "fromVariableId": 1, "toVariableId": 1, "type": "inhibitor"},
            ],
        },
    }
    model = BmaModel.from_json_string(json.dumps(document))
    assert model.layout is None
    assert model.network.variables == [BmaVariable(1, "x", (0, 1), UpdateFunction.from_string("1 - var(1)"))]
    assert model.network.relationships == [BmaRelationship.new_inhibitor(1, 1, 1)]
    assert model.is_boolean()


def test_invalid_formula_is_kept():
    document = json.loads(MODEL_JSON)
    document["Model"]["Variables"][1]["Formula"] = "var(zzz) +"
    model = BmaModel.from_json_string(json.dumps(document))
    formula = model.network.variables[1].formula
    assert isinstance(formula, InvalidUpdateFunction)
    assert formula.expression == "var(zzz) +"
    assert formula.message == "`zzz` is not a known regulator"
    assert model.network.variables[1].formula_string() == "var(zzz) +"
    assert model.network.validate() == [f"(Variable id: `2`) {formula}"]
    assert '"Formula": "var(zzz) +"' in model.to_json_string()


def test_round_trip():
    model = BmaModel.from_json_string(MODEL_JSON)
    text = model.to_json_string(pretty=True)
    assert BmaModel.from_json_string(text) == model
    data = json.loads(text)
    assert data["Model"]["Variables"][2]["Formula"] == "(var(1) + var(3))"
    assert data["Layout"] == model.layout


def test_write_model_without_layout():
    network = BmaNetwork([BmaVariable.new_boolean(1, None, "1")], name="n")
    data = json.loads(BmaModel(network).to_json_string())
    assert data == {
        "Model": {
            "Name": "n",
            "Variables": [{"Id": 1, "Name": "", "RangeFrom": 0, "RangeTo": 1, "Formula": "1"}],
            "Relationships": [],
        },
    }


@pytest.mark.parametrize("document", [
    "not json",
    '{"Model": {}}',
    '{"Layout": {}}',
    '{"Model": {"Variables": [{"Id": -1, "RangeFrom": 0, "RangeTo": 1}]}}',
    '{"Model": {"Variables": [{"Id": 1, "RangeFrom": 0}]}}',
    '{"Model": {"Variables": [], "Relationships": [{"Id": 1, "FromVariable": 1, "ToVariable": 1, "Type": "Catalyst"}]}}',
])
def test_malformed_documents(document):
    with pytest.raises(ValueError):
        BmaModel.from_json_string(document)


def test_empty_model():
    model = BmaModel()
    assert model.get_max_var_level() == 0
    assert model.is_boolean()
    assert model.network.validate() == []


def test_validate():
    variables = [BmaVariable(1, "a"), BmaVariable(1, ""), BmaVariable(2, "c", (3, 1))]
    relationships = [BmaRelationship.new_activator(1, 1, 2), BmaRelationship.new_activator(1, 9, 2)]
    issues = BmaNetwork(variables, relationships).validate()
    assert issues == [
        "(Variable id: `1`) Id must be unique within the enclosing `BmaNetwork`",
        "(Variable id: `1`) Name cannot be empty; use `None` instead",
        "(Variable id: `2`) Range `(3, 1)` is invalid; must be a non-empty interval",
        "(Relationship id: `1`) Id must be unique within the enclosing `BmaNetwork`",
        "(Relationship id: `1`) Variable `9` does not exist",
    ]


# ------------------------------------------------------------
# Name resolution
# ------------------------------------------------------------

CELLS_JSON = {
    "Model": {
        "Name": "cells",
        "Variables": [
            {"Id": 1, "Name": "A", "RangeFrom": 0, "RangeTo": 1, "Formula": ""},
            {"Id": 2, "Name": "A", "RangeFrom": 0, "RangeTo": 1, "Formula": ""},
            {"Id": 3, "Name": "B", "RangeFrom": 0, "RangeTo": 1, "Formula": "var(A)"},
            {"Id": 4, "Name": "C", "RangeFrom": 0, "RangeTo": 1, "Formula": "var(B)"},
            {"Id": 5, "Name": "D", "RangeFrom": 0, "RangeTo": 1, "Formula": "var(A)"},
        ],
        "Relationships": [
            {"Id": 1, "FromVariable": 1, "ToVariable": 3, "Type": "Activator"},
            {"Id": 2, "FromVariable": 2, "ToVariable": 4, "Type": "Activator"},
            {"Id": 3, "FromVariable": 1, "ToVariable": 5, "Type": "Activator"},
            {"Id": 4, "FromVariable": 2, "ToVariable": 5, "Type": "Inhibitor"},
        ],
    },
}


def test_names_resolve_against_regulators():
    variables = BmaModel.from_json_string(json.dumps(CELLS_JSON)).network.variables
    # `A` names two variables, but only one of them regulates `B`.
    assert variables[2].formula == UpdateFunction.mk_variable(1)

    # `B` exists, but does not regulate `C`.
    assert isinstance(variables[3].formula, InvalidUpdateFunction)
    assert variables[3].formula.message == "`B` is not a known regulator"

    assert isinstance(variables[4].formula, InvalidUpdateFunction)
    assert variables[4].formula.message == "`A` resolves to multiple regulator IDs: `{1, 2}`"


# ------------------------------------------------------------
# XML
# ------------------------------------------------------------

MODEL_XML = """
<Model Id="7" Name="cells" BioCheckVersion="1.0">
  <Description>two cells</Description>
  <CreatedDate>2015-01-01</CreatedDate>
  <Layout>
    <Columns>1</Columns><Rows>1</Rows><ZoomLevel>0.5</ZoomLevel><PanX>10</PanX><PanY>-20</PanY>
  </Layout>
  <Variables>
    <Variable Id="1" Name="A">
      <RangeFrom>0</RangeFrom><RangeTo>1</RangeTo><Function></Function>
      <PositionX>100.5</PositionX><PositionY>50</PositionY>
      <ContainerId>1</ContainerId><CellX>0</CellX><CellY>0</CellY>
    </Variable>
    <Variable Id="2" Name="A">
      <RangeFrom>0</RangeFrom><RangeTo>1</RangeTo><Formula>var(B)</Formula>
    </Variable>
    <Variable>
      <Id>3</Id><Name>B</Name>
      <RangeFrom>0</RangeFrom><RangeTo>2</RangeTo><Formula>var(A) + 1</Formula><Type>Constant</Type>
    </Variable>
  </Variables>
  <Relationships>
    <Relationship Id="1"><FromVariableId>1</FromVariableId><ToVariableId>3</ToVariableId><Type>Activator</Type></Relationship>
    <Relationship Id="2"><FromVariableId>2</FromVariableId><ToVariableId>1</ToVariableId><Type>Inhibitor</Type></Relationship>
  </Relationships>
  <Containers>
    <Container Id="1" Name="cell 1"><PositionX>0</PositionX><PositionY>0</PositionY><Size>1</Size></Container>
  </Containers>
</Model>
"""


def test_read_xml_model():
    model = BmaModel.from_xml_string(MODEL_XML)
    network = model.network
    assert network.name == "cells"
    assert [(v.id, v.name, v.range) for v in network.variables] == [(1, "A", (0, 1)), (2, "A", (0, 1)), (3, "B", (0, 2))]
    assert network.variables[0].formula is None
    assert network.variables[1].formula.message == "`B` is not a known regulator"
    assert str(network.variables[2].formula) == "(var(1) + 1)"
    assert network.relationships == [
        BmaRelationship.new_activator(1, 1, 3),
        BmaRelationship.new_inhibitor(2, 2, 1),
    ]
    assert model.metadata == {"biocheck_version": "1.0", "created_date": "2015-01-01"}


def test_read_xml_layout():
    layout = BmaModel.from_xml_string(MODEL_XML).layout
    assert layout["Description"] == "two cells"
    assert (layout["ZoomLevel"], layout["PanX"], layout["PanY"]) == (0.5, 10.0, -20.0)
    assert layout["Containers"] == [{"Id": 1, "Name": "cell 1", "Size": 1, "PositionX": 0.0, "PositionY": 0.0}]
    assert layout["Variables"][0] == {
        "Id": 1, "Name": "A", "Type": "Default", "ContainerId": 1, "PositionX": 100.5, "PositionY": 50.0,
        "CellX": 0, "CellY": 0, "Angle": 0.0, "Description": "",
    }
    assert layout["Variables"][2]["Type"] == "Constant"
    assert "ContainerId" not in layout["Variables"][2]


@pytest.mark.parametrize("pretty", [True, False])
def test_xml_round_trip(pretty):
    model = BmaModel.from_xml_string(MODEL_XML)
    assert BmaModel.from_xml_string(model.to_xml_string(pretty=pretty)) == model


def test_json_model_to_xml():
    model = BmaModel.from_json_string(MODEL_JSON)
    xml_model = BmaModel.from_xml_string(model.to_xml_string())
    assert xml_model.network == model.network
    assert xml_model.layout["Variables"][2]["PositionX"] == 120.5


@pytest.mark.parametrize("document", [
    "<Model>",
    "<Model><Variables><Variable Id='1'><RangeTo>1</RangeTo></Variable></Variables></Model>",
    "<Model><Relationships><Relationship Id='1'><FromVariableId>1</FromVariableId></Relationship></Relationships></Model>",
])
def test_malformed_xml_documents(document):
    with pytest.raises(ValueError):
        BmaModel.from_xml_string(document)
