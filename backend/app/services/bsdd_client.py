"""
bSDD Client Service
Looks up buildingSMART Data Dictionary classes for IFC element types.

Requests carry their own timeout. Rate limits (429) honour ``Retry-After``,
server errors (5xx) back off exponentially, other client errors fail at once.
Successful lookups are cached per process until their time to live runs out.
"""
import logging
import threading
import time
from collections import OrderedDict
from typing import Optional, Dict, Any, List, Callable, Tuple

import requests

from config import (
    BSDD_API_BASE_URL,
    BSDD_LANGUAGE_CODE,
    BSDD_REQUEST_TIMEOUT,
    BSDD_MAX_RETRIES,
    BSDD_INITIAL_RETRY_DELAY,
    BSDD_CACHE_MAX_SIZE,
    BSDD_SEARCH_CACHE_TTL,
    BSDD_CLASS_CACHE_TTL,
)
from workflow_engine.node_executors import element_properties

logger = logging.getLogger(__name__)

# Metadata copied onto a matching element property as "<key>_bsdd_<suffix>"
PROPERTY_METADATA = (
    ('uri', 'uri'),
    ('definition', 'definition'),
    ('unit', 'unit'),
    ('dataType', 'dataType'),
)


class BsddClient:
    """
    Classification service backed by the bSDD REST API.

    One instance is shared by concurrent runs; the cache is guarded by a lock.
    """

    def __init__(
        self,
        base_url: str = BSDD_API_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: float = BSDD_REQUEST_TIMEOUT,
        max_retries: int = BSDD_MAX_RETRIES,
        retry_delay: float = BSDD_INITIAL_RETRY_DELAY,
        language_code: str = BSDD_LANGUAGE_CODE,
        search_ttl: float = BSDD_SEARCH_CACHE_TTL,
        class_ttl: float = BSDD_CLASS_CACHE_TTL,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.session.headers.update({'Accept': 'application/json'})
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.language_code = language_code
        self.search_ttl = search_ttl
        self.class_ttl = class_ttl
        self._sleep = sleep
        self._clock = clock
        self._cache: "OrderedDict[tuple, Tuple[float, Any]]" = OrderedDict()
        self._cache_lock = threading.Lock()

    def search_classes(self, search_text: str, domain_uri: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Search bSDD classes by name or code.

        Args:
            search_text: Text to search for (usually an IFC entity name)
            domain_uri: Optional dictionary namespace to restrict the search

        Returns:
            List of class dicts (uri, code, name, relatedIfcEntityNames, ...)
        """
        cache_key = ('search', search_text, domain_uri, self.language_code)
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        params = {'SearchText': search_text, 'LanguageCode': self.language_code}
        if domain_uri:
            params['DomainNamespaceUri'] = domain_uri

        data = self._get('/Class/Search', params)
        classes = data.get('classes') or []
        self._remember(cache_key, classes, self.search_ttl)
        return classes

    def get_class(self, uri: str, include_properties: bool = True) -> Optional[Dict[str, Any]]:
        """
        Fetch the details of one class, including its properties.

        Returns:
            Class dict with a normalized ``properties`` list, or None when
            bSDD does not know the URI
        """
        cache_key = ('class', uri, include_properties, self.language_code)
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        params = {
            'Uri': uri,
            'LanguageCode': self.language_code,
            'IncludeClassProperties': str(include_properties).lower(),
        }
        try:
            data = self._get('/Class', params)
        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                logger.warning("bSDD class not found: %s", uri)
                return None
            raise

        details = {
            'uri': data.get('uri'),
            'code': data.get('code'),
            'name': data.get('name'),
            'definition': data.get('definition'),
            'relatedIfcEntityNames': data.get('relatedIfcEntityNames') or [],
            'properties': [
                {
                    'uri': prop.get('propertyUri'),
                    'code': prop.get('propertyCode'),
                    'name': prop.get('propertyName'),
                    'definition': prop.get('definition'),
                    'dataType': prop.get('dataType'),
                    'unit': prop.get('unit'),
                }
                for prop in data.get('classProperties') or []
            ],
        }
        self._remember(cache_key, details, self.class_ttl)
        return details

    def find_class(self, element_type: str, domain_uri: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Find the bSDD class matching an IFC element type.

        Prefers a class that lists the type among its related IFC entities,
        then the first hit, then retries without the ``Ifc`` prefix.
        """
        if not element_type:
            return None

        classes = self.search_classes(element_type, domain_uri)
        if classes:
            exact = next(
                (c for c in classes if element_type in (c.get('relatedIfcEntityNames') or [])),
                None
            )
            return exact or classes[0]

        simplified = element_type[3:] if element_type.startswith('Ifc') else element_type
        if simplified and simplified != element_type:
            classes = self.search_classes(simplified, domain_uri)
            if classes:
                return classes[0]

        return None

    def enrich(self, element: Dict[str, Any], classification: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return a copy of ``element`` tagged with its bSDD classification.

        When the class details are available, properties the class defines get
        ``<key>_bsdd_uri`` / ``_definition`` / ``_unit`` / ``_dataType``
        companions, and class properties the element lacks are listed under
        ``suggestedProperties``.
        """
        enriched = {
            **element,
            'bsddEnriched': True,
            'bsddClass': {
                'uri': classification.get('uri'),
                'code': classification.get('code'),
                'name': classification.get('name'),
            },
            'suggestedProperties': [],
        }

        details = None
        if classification.get('uri'):
            try:
                details = self.get_class(classification['uri'])
            except requests.RequestException as e:
                logger.warning("bSDD class details unavailable for %s: %s", classification['uri'], e)
        if not details or not details.get('properties'):
            return enriched

        existing = element_properties(element)
        class_properties = details['properties']
        annotated = dict(existing)
        for key in existing:
            match = next((p for p in class_properties if key in (p.get('name'), p.get('code'))), None)
            if match:
                for suffix, field in PROPERTY_METADATA:
                    annotated[f"{key}_bsdd_{suffix}"] = match.get(field)

        enriched['properties'] = annotated
        enriched['suggestedProperties'] = [p for p in class_properties if p.get('name') not in existing]
        return enriched

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def clean_expired(self) -> int:
        """Drop expired cache entries and return how many were removed."""
        now = self._clock()
        with self._cache_lock:
            expired = [key for key, (expires_at, _) in self._cache.items() if expires_at <= now]
            for key in expired:
                del self._cache[key]
        return len(expired)

    def _cached(self, key: tuple) -> Any:
        with self._cache_lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._cache[key]
                return None
            self._cache.move_to_end(key)
            return value

    def _remember(self, key: tuple, value: Any, ttl: float) -> None:
        with self._cache_lock:
            self._cache[key] = (self._clock() + ttl, value)
            self._cache.move_to_end(key)
            while len(self._cache) > BSDD_CACHE_MAX_SIZE:
                self._cache.popitem(last=False)

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET with retry: 429 waits Retry-After, 5xx backs off, 4xx raises."""
        url = f"{self.base_url}{path}"
        delay = self.retry_delay

        for attempt in range(self.max_retries + 1):
            response = self.session.get(url, params=params, timeout=self.timeout)
            status = response.status_code

            retryable = status == 429 or status >= 500
            if not retryable or attempt == self.max_retries:
                response.raise_for_status()
                return response.json()

            if status == 429:
                delay = self._retry_after(response, default=delay * 2)
                logger.warning("bSDD rate limit reached, waiting %.1fs before retry", delay)
                self._sleep(delay)
            else:
                logger.warning("bSDD server error %d, retrying in %.1fs", status, delay)
                self._sleep(delay)
                delay *= 2

        raise RuntimeError("Max retry attempts exceeded")

    @staticmethod
    def _retry_after(response: requests.Response, default: float) -> float:
        value = response.headers.get('Retry-After')
        try:
            return float(value) if value else default
        except ValueError:
            return default
