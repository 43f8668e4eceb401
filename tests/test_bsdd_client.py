import threading

import pytest
import requests

from app.services import BsddClient


class StubResponse:
    def __init__(self, status_code=200, payload=None, headers=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.headers = headers or {}

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class StubSession:
    """Replays queued responses and records each GET."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.headers = {}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'timeout': timeout})
        return self.responses.pop(0)


def classes(*items):
    return StubResponse(payload={'classes': list(items)})


def make_client(session, **kwargs):
    sleeps = []
    client = BsddClient(
        base_url="https://bsdd.test/api/", session=session, sleep=sleeps.append, **kwargs
    )
    return client, sleeps


def test_search_sends_timeout_and_language():
    session = StubSession(classes({'code': 'WALL'}))
    client, _ = make_client(session, timeout=2.5, language_code='nl-NL')

    assert client.search_classes('IfcWall') == [{'code': 'WALL'}]
    call = session.calls[0]
    assert call['url'] == "https://bsdd.test/api/Class/Search"
    assert call['params'] == {'SearchText': 'IfcWall', 'LanguageCode': 'nl-NL'}
    assert call['timeout'] == 2.5
    assert session.headers['Accept'] == 'application/json'


def test_find_class_prefers_related_entity():
    session = StubSession(classes(
        {'code': 'WALLTYPE', 'relatedIfcEntityNames': ['IfcWallType']},
        {'code': 'WALL', 'relatedIfcEntityNames': ['IfcWall']},
    ))
    client, _ = make_client(session)

    assert client.find_class('IfcWall')['code'] == 'WALL'


def test_find_class_retries_without_ifc_prefix():
    session = StubSession(classes(), classes({'code': 'DOOR'}))
    client, _ = make_client(session)

    assert client.find_class('IfcDoor') == {'code': 'DOOR'}
    assert [c['params']['SearchText'] for c in session.calls] == ['IfcDoor', 'Door']


def test_find_class_none_when_nothing_matches():
    client, _ = make_client(StubSession(classes(), classes()))

    assert client.find_class('IfcProxy') is None
    assert client.find_class('') is None


def test_results_are_cached():
    session = StubSession(classes({'code': 'WALL'}))
    client, _ = make_client(session)

    client.search_classes('IfcWall')
    client.search_classes('IfcWall')

    assert len(session.calls) == 1

    client.clear_cache()
    session.responses.append(classes({'code': 'WALL'}))
    client.search_classes('IfcWall')
    assert len(session.calls) == 2


def test_server_errors_back_off_exponentially():
    session = StubSession(StubResponse(503), StubResponse(502), classes({'code': 'WALL'}))
    client, sleeps = make_client(session, retry_delay=1.0)

    assert client.search_classes('IfcWall') == [{'code': 'WALL'}]
    assert sleeps == [1.0, 2.0]


def test_rate_limit_honours_retry_after():
    session = StubSession(StubResponse(429, headers={'Retry-After': '7'}), classes())
    client, sleeps = make_client(session)

    assert client.search_classes('IfcWall') == []
    assert sleeps == [7.0]


def test_client_errors_are_not_retried():
    session = StubSession(StubResponse(404))
    client, sleeps = make_client(session)

    with pytest.raises(requests.HTTPError):
        client.search_classes('IfcWall')
    assert sleeps == []
    assert len(session.calls) == 1


def test_gives_up_after_max_retries():
    session = StubSession(*[StubResponse(500) for _ in range(3)])
    client, sleeps = make_client(session, max_retries=2, retry_delay=0.5)

    with pytest.raises(requests.HTTPError):
        client.search_classes('IfcWall')
    assert sleeps == [0.5, 1.0]
    assert len(session.calls) == 3


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


WALL_CLASS = {
    'uri': 'https://bsdd.test/class/wall',
    'code': 'WALL',
    'name': 'Wall',
    'definition': 'Vertical construction',
    'classProperties': [
        {'propertyUri': 'https://bsdd.test/prop/fire', 'propertyCode': 'FireRating',
         'propertyName': 'FireRating', 'definition': 'Fire resistance', 'dataType': 'String'},
        {'propertyUri': 'https://bsdd.test/prop/thickness', 'propertyCode': 'Width',
         'propertyName': 'Thickness', 'dataType': 'Real', 'unit': 'mm'},
        {'propertyUri': 'https://bsdd.test/prop/acoustic', 'propertyCode': 'AcousticRating',
         'propertyName': 'AcousticRating', 'dataType': 'String'},
    ],
}

WALL = {'uri': WALL_CLASS['uri'], 'code': 'WALL', 'name': 'Wall', 'extra': 1}


def test_get_class_normalizes_properties():
    session = StubSession(StubResponse(payload=WALL_CLASS))
    client, _ = make_client(session)

    details = client.get_class(WALL_CLASS['uri'])

    assert session.calls[0]['url'] == "https://bsdd.test/api/Class"
    assert session.calls[0]['params']['Uri'] == WALL_CLASS['uri']
    assert session.calls[0]['params']['IncludeClassProperties'] == 'true'
    assert details['code'] == 'WALL'
    assert details['properties'][1] == {
        'uri': 'https://bsdd.test/prop/thickness', 'code': 'Width', 'name': 'Thickness',
        'definition': None, 'dataType': 'Real', 'unit': 'mm',
    }


def test_get_class_unknown_uri_is_none():
    client, _ = make_client(StubSession(StubResponse(404)))

    assert client.get_class('https://bsdd.test/class/nope') is None


def test_get_class_retries_server_errors():
    session = StubSession(StubResponse(503), StubResponse(payload=WALL_CLASS))
    client, sleeps = make_client(session, retry_delay=2.0)

    assert client.get_class(WALL_CLASS['uri'])['name'] == 'Wall'
    assert sleeps == [2.0]


def test_enrich_annotates_known_properties():
    client, _ = make_client(StubSession(StubResponse(payload=WALL_CLASS)))
    element = {'id': '1:1', 'type': 'IfcWall', 'properties': {'FireRating': 'EI60', 'Width': 200}}

    enriched = client.enrich(element, WALL)

    assert enriched['bsddEnriched'] is True
    assert enriched['bsddClass'] == {'uri': WALL_CLASS['uri'], 'code': 'WALL', 'name': 'Wall'}
    props = enriched['properties']
    assert props['FireRating'] == 'EI60'
    assert props['FireRating_bsdd_uri'] == 'https://bsdd.test/prop/fire'
    assert props['FireRating_bsdd_definition'] == 'Fire resistance'
    assert props['Width_bsdd_unit'] == 'mm'
    assert props['Width_bsdd_dataType'] == 'Real'
    assert [p['name'] for p in enriched['suggestedProperties']] == ['Thickness', 'AcousticRating']
    assert 'bsddEnriched' not in element
    assert element['properties'] == {'FireRating': 'EI60', 'Width': 200}


def test_enrich_reads_json_text_properties():
    client, _ = make_client(StubSession(StubResponse(payload=WALL_CLASS)))

    enriched = client.enrich({'id': '1:2', 'properties': '{"FireRating": "EI30"}'}, WALL)

    assert enriched['properties']['FireRating_bsdd_uri'] == 'https://bsdd.test/prop/fire'


def test_enrich_without_class_details_only_tags():
    client, _ = make_client(StubSession(StubResponse(404)))
    element = {'id': '1:1', 'type': 'IfcWall', 'properties': {'FireRating': 'EI60'}}

    enriched = client.enrich(element, WALL)

    assert enriched['bsddEnriched'] is True
    assert enriched['properties'] == {'FireRating': 'EI60'}
    assert enriched['suggestedProperties'] == []


def test_enrich_survives_unreachable_class_endpoint():
    class DownSession(StubSession):
        def get(self, url, params=None, timeout=None):
            raise requests.ConnectionError("bSDD down")

    client, _ = make_client(DownSession())

    enriched = client.enrich({'id': '1:1'}, WALL)

    assert enriched['bsddEnriched'] is True
    assert enriched['suggestedProperties'] == []


def test_class_details_are_cached():
    session = StubSession(StubResponse(payload=WALL_CLASS))
    client, _ = make_client(session)

    client.enrich({'id': '1:1', 'properties': {}}, WALL)
    client.enrich({'id': '1:2', 'properties': {}}, WALL)

    assert len(session.calls) == 1


def test_search_cache_expires_after_ttl():
    clock = FakeClock()
    session = StubSession(classes({'code': 'WALL'}), classes({'code': 'WALL-2'}))
    client, _ = make_client(session, clock=clock, search_ttl=60)

    assert client.search_classes('IfcWall') == [{'code': 'WALL'}]
    clock.now += 59
    assert client.search_classes('IfcWall') == [{'code': 'WALL'}]
    clock.now += 1
    assert client.search_classes('IfcWall') == [{'code': 'WALL-2'}]
    assert len(session.calls) == 2


def test_class_cache_outlives_search_cache():
    clock = FakeClock()
    session = StubSession(StubResponse(payload=WALL_CLASS), classes())
    client, _ = make_client(session, clock=clock, search_ttl=60, class_ttl=3600)

    client.get_class(WALL_CLASS['uri'])
    client.search_classes('IfcWall')
    clock.now += 120

    assert client.clean_expired() == 1
    assert client.get_class(WALL_CLASS['uri'])['code'] == 'WALL'
    assert len(session.calls) == 2


def test_cache_is_safe_under_concurrent_use():
    class EchoSession(StubSession):
        def get(self, url, params=None, timeout=None):
            return classes({'code': params['SearchText']})

    client, _ = make_client(EchoSession())
    errors = []

    def worker(offset):
        try:
            for i in range(300):
                text = f"Ifc{(offset + i) % 40}"
                assert client.search_classes(text) == [{'code': text}]
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
