import pytest

from database import ModelRepository, ModelNotFoundError


@pytest.fixture
def repository(tmp_path):
    return ModelRepository(tmp_path / "models.duckdb")


def test_add_and_load_model(repository):
    model_id = repository.add_model("Office", project_id="P-1", schema_version="IFC4", file_name="office.ifc")
    stored = repository.add_elements(model_id, [
        {'expressId': 12, 'type': 'IfcWall', 'name': 'Wall A', 'guid': '2O2Fr$t4X7Zf8NOew3FLOH',
         'properties': {'Pset_WallCommon': {'FireRating': 'EI60'}}},
        {'expressId': 7, 'type': 'IfcDoor'},
    ])

    loaded = repository.load_model(model_id)

    assert stored == 2
    assert loaded['model']['name'] == "Office"
    assert loaded['model']['schemaVersion'] == "IFC4"
    assert [el['expressId'] for el in loaded['elements']] == [7, 12]
    wall = loaded['elements'][1]
    assert wall['id'] == f"{model_id}:12"
    assert wall['properties'] == {'Pset_WallCommon': {'FireRating': 'EI60'}}
    assert loaded['elements'][0]['properties'] == {}


def test_model_ids_are_sequential(repository):
    first = repository.add_model("A")
    second = repository.add_model("B")

    assert second == first + 1


def test_string_model_id_is_accepted(repository):
    model_id = repository.add_model("A")

    assert repository.load_model(str(model_id))['model']['id'] == model_id


@pytest.mark.parametrize('model_id', [999, 'not-a-number', None])
def test_unknown_model_raises(repository, model_id):
    with pytest.raises(ModelNotFoundError, match="not found"):
        repository.load_model(model_id)


def test_add_no_elements(repository):
    assert repository.add_elements(repository.add_model("Empty"), []) == 0
