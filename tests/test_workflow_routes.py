import pytest

from server import create_app

from conftest import FakeClassifier, FakeSpecValidator, node


@pytest.fixture
def client(execution_manager, model_loader):
    app = create_app(
        execution_manager=execution_manager,
        model_loader=model_loader,
        spec_validator=FakeSpecValidator(),
        classifier=FakeClassifier(),
    )
    app.config['TESTING'] = True
    return app.test_client()


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json() == {'status': 'ok'}


def test_validate_valid_graph(client, wall_export_graph):
    response = client.post('/workflows/validate', json={'graph': wall_export_graph})

    assert response.status_code == 200
    assert response.get_json() == {'valid': True, 'errors': []}


def test_validate_reports_violations(client):
    graph = {'nodes': [node('L', 'loader'), node('X', 'quality-score')], 'edges': []}

    body = client.post('/workflows/validate', json={'graph': graph}).get_json()

    assert body == {'valid': False, 'errors': ["Node X (X) is not connected"]}


def test_validate_requires_graph(client):
    response = client.post('/workflows/validate', json={})

    assert response.status_code == 400
    assert response.get_json()['error'] == "No workflow graph provided"


def test_malformed_graph_is_bad_request(client):
    response = client.post('/workflows/validate', json={'graph': {'nodes': [{'type': 'loader'}]}})

    assert response.status_code == 400


@pytest.mark.parametrize('graph', [
    {'nodes': {}},
    {'nodes': [{'id': 'a', 'type': 'loader', 'data': ['Load']}]},
])
def test_wrongly_shaped_graph_is_bad_request(client, graph):
    response = client.post('/workflows/validate', json={'graph': graph})

    assert response.status_code == 400
    assert 'error' in response.get_json()


def test_execute_and_read_back(client, wall_export_graph):
    response = client.post('/workflows/wf-1/execute', json={'graph': wall_export_graph})
    body = response.get_json()

    assert response.status_code == 200
    assert body['status'] == 'success'
    assert body['workflowId'] == 'wf-1'
    assert body['summary']['outputData']['elementCount'] == 4
    assert [e['status'] for e in body['progress']] == ['running', 'completed'] * 3

    record = client.get(f"/executions/{body['executionId']}").get_json()
    assert record['status'] == 'success'
    assert record['summary']['completedNodes'] == 3

    listed = client.get('/workflows/wf-1/executions').get_json()
    assert [r['executionId'] for r in listed] == [body['executionId']]


def test_execute_rejects_invalid_graph(client, execution_manager):
    graph = {'nodes': [node('L', 'loader'), node('X', 'quality-score')], 'edges': []}

    response = client.post('/workflows/wf-2/execute', json={'graph': graph})

    assert response.status_code == 400
    assert response.get_json()['violations'] == ["Node X (X) is not connected"]
    assert execution_manager.list_executions('wf-2') == []


def test_execute_partial_run_is_still_ok(client):
    graph = {'nodes': [node('L', 'loader', modelId='1'), node('L404', 'loader', modelId='404')], 'edges': []}

    body = client.post('/workflows/wf-3/execute', json={'graph': graph}).get_json()

    assert body['status'] == 'partial'
    assert body['errors'][0]['nodeId'] == 'L404'


def test_list_limit(client, wall_export_graph):
    for _ in range(3):
        client.post('/workflows/wf-4/execute', json={'graph': wall_export_graph})

    assert len(client.get('/workflows/wf-4/executions?limit=2').get_json()) == 2
    assert client.get('/workflows/wf-4/executions?limit=0').status_code == 400


def test_unknown_execution_is_404(client):
    response = client.get('/executions/nope')

    assert response.status_code == 404
    assert 'not found' in response.get_json()['error']


def test_delete_execution(client, wall_export_graph):
    execution_id = client.post(
        '/workflows/wf-5/execute', json={'graph': wall_export_graph}
    ).get_json()['executionId']

    assert client.delete(f"/executions/{execution_id}").status_code == 200
    assert client.delete(f"/executions/{execution_id}").status_code == 404


def test_unknown_route_is_json_404(client):
    response = client.get('/nowhere')

    assert response.status_code == 404
    assert response.get_json() == {'error': 'Not found'}
