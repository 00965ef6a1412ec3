"""Service Worker JavaScript rendering.

The generated worker is self-contained (no runtime library import):
- Precache: every manifest entry is fetched on install and served cache-first
- Activate: stale precache entries (old revisions) are removed
- Navigation fallback: optional app-shell URL for navigation requests
- Runtime caching: ordered rules mapping URL regexes to caching strategies

Rendering is deterministic: the same config and entries always produce the
same bytes, so repeated builds over unchanged files don't churn the worker.
"""

import json

from .config import GenerateSWConfig, RuntimeCachingRule
from .models import ManifestEntry


def _js(value: object) -> str:
    """Serialize a value as a JavaScript literal with stable key order."""
    return json.dumps(value, indent=2, sort_keys=True)


def _rule_to_dict(rule: RuntimeCachingRule, cache_id: str) -> dict:
    return {
        "cacheName": rule.cache_name or f"{cache_id}-runtime",
        "handler": rule.handler,
        "maxAgeSeconds": rule.max_age_seconds,
        "maxEntries": rule.max_entries,
        "method": rule.method,
        "networkTimeoutSeconds": rule.network_timeout_seconds,
        "urlPattern": rule.url_pattern,
    }


# Runtime shared by every generated worker. Plain string: no Python
# interpolation, the per-build constants are emitted above it.
_SW_RUNTIME_JS = """
function toAbsolute(url) {
    return new URL(url, self.location.href).href;
}

function cacheKeyFor(entry) {
    const url = new URL(entry.url, self.location.href);
    if (entry.revision) {
        url.searchParams.set('__WB_REVISION__', entry.revision);
    }
    return url.href;
}

// Absolute URL -> cache key (URL plus revision)
const PRECACHE_KEYS = new Map(
    PRECACHE_MANIFEST.map(entry => [toAbsolute(entry.url), cacheKeyFor(entry)])
);

function stripIgnoredParams(href) {
    const url = new URL(href);
    url.hash = '';
    for (const name of [...url.searchParams.keys()]) {
        if (IGNORE_URL_PARAMETERS.some(pattern => new RegExp(pattern).test(name))) {
            url.searchParams.delete(name);
        }
    }
    return url;
}

function precacheKeyForRequest(request) {
    const url = stripIgnoredParams(request.url);
    if (PRECACHE_KEYS.has(url.href)) {
        return PRECACHE_KEYS.get(url.href);
    }
    if (DIRECTORY_INDEX && url.pathname.endsWith('/')) {
        url.pathname += DIRECTORY_INDEX;
        if (PRECACHE_KEYS.has(url.href)) {
            return PRECACHE_KEYS.get(url.href);
        }
    }
    return null;
}

function servePrecached(cacheKey, request) {
    return caches.open(PRECACHE_CACHE)
        .then(cache => cache.match(cacheKey))
        .then(cachedResponse => cachedResponse || fetch(request));
}

// Install event - fetch every manifest entry that isn't cached yet
self.addEventListener('install', (event) => {
    console.log('[SW] Installing', PRECACHE_CACHE);
    event.waitUntil(
        caches.open(PRECACHE_CACHE)
            .then(cache => Promise.all(PRECACHE_MANIFEST.map(entry => {
                const cacheKey = cacheKeyFor(entry);
                return cache.match(cacheKey).then(cachedResponse => {
                    if (cachedResponse) {
                        return undefined;
                    }
                    const request = new Request(toAbsolute(entry.url), {
                        cache: 'reload',
                        credentials: 'same-origin'
                    });
                    return fetch(request).then(response => {
                        if (!response.ok) {
                            throw new Error(`[SW] Precache request for ${entry.url} returned ${response.status}`);
                        }
                        return cache.put(cacheKey, response);
                    });
                });
            })))
            .then(() => {
                if (SKIP_WAITING) {
                    return self.skipWaiting();
                }
                return undefined;
            })
    );
});

// Activate event - drop old revisions and, optionally, outdated precaches
self.addEventListener('activate', (event) => {
    console.log('[SW] Activating', PRECACHE_CACHE);
    const expectedKeys = new Set(PRECACHE_KEYS.values());
    event.waitUntil(
        caches.open(PRECACHE_CACHE)
            .then(cache => cache.keys().then(requests => Promise.all(
                requests
                    .filter(request => !expectedKeys.has(request.url))
                    .map(request => cache.delete(request))
            )))
            .then(() => {
                if (!CLEANUP_OUTDATED_CACHES) {
                    return undefined;
                }
                return caches.keys().then(cacheNames => Promise.all(
                    cacheNames
                        .filter(name => name.startsWith(`${CACHE_ID}-precache-`) && name !== PRECACHE_CACHE)
                        .map(name => {
                            console.log('[SW] Deleting outdated cache:', name);
                            return caches.delete(name);
                        })
                ));
            })
            .then(() => {
                if (CLIENTS_CLAIM) {
                    return self.clients.claim();
                }
                return undefined;
            })
    );
});

function isExpired(response, maxAgeSeconds) {
    if (!maxAgeSeconds) {
        return false;
    }
    const dateHeader = response.headers.get('date');
    if (!dateHeader) {
        return false;
    }
    return Date.parse(dateHeader) + maxAgeSeconds * 1000 < Date.now();
}

function trimCache(cache, maxEntries) {
    if (!maxEntries) {
        return Promise.resolve();
    }
    return cache.keys().then(requests => Promise.all(
        requests
            .slice(0, Math.max(0, requests.length - maxEntries))
            .map(request => cache.delete(request))
    ));
}

function putInCache(rule, request, response) {
    if (!response || !response.ok) {
        return Promise.resolve();
    }
    return caches.open(rule.cacheName)
        .then(cache => cache.put(request, response).then(() => trimCache(cache, rule.maxEntries)));
}

function matchFresh(rule, request) {
    return caches.open(rule.cacheName)
        .then(cache => cache.match(request))
        .then(cachedResponse => {
            if (cachedResponse && !isExpired(cachedResponse, rule.maxAgeSeconds)) {
                return cachedResponse;
            }
            return undefined;
        });
}

function fetchAndCache(rule, request) {
    return fetch(request).then(response => {
        if (rule.method === 'GET') {
            putInCache(rule, request, response.clone());
        }
        return response;
    });
}

const STRATEGIES = {
    CacheFirst: (rule, request) => matchFresh(rule, request)
        .then(cachedResponse => cachedResponse || fetchAndCache(rule, request)),

    CacheOnly: (rule, request) => matchFresh(rule, request)
        .then(cachedResponse => cachedResponse || Response.error()),

    NetworkFirst: (rule, request) => {
        const network = fetchAndCache(rule, request);
        const fallback = () => matchFresh(rule, request)
            .then(cachedResponse => cachedResponse || network);
        if (!rule.networkTimeoutSeconds) {
            return network.catch(fallback);
        }
        const timeout = new Promise(resolve => {
            setTimeout(() => resolve(null), rule.networkTimeoutSeconds * 1000);
        });
        return Promise.race([network.catch(() => null), timeout])
            .then(response => response || fallback())
            .catch(fallback);
    },

    NetworkOnly: (rule, request) => fetch(request),

    StaleWhileRevalidate: (rule, request) => {
        const network = fetchAndCache(rule, request).catch(() => null);
        return matchFresh(rule, request).then(cachedResponse => {
            if (cachedResponse) {
                return cachedResponse;
            }
            return network.then(response => response || Response.error());
        });
    }
};

function isDenylisted(href) {
    const pathname = new URL(href).pathname;
    return NAVIGATE_FALLBACK_DENYLIST.some(pattern => new RegExp(pattern).test(pathname));
}

// Fetch event - precache first, then navigation fallback, then runtime rules
self.addEventListener('fetch', (event) => {
    const request = event.request;

    if (request.method === 'GET') {
        const cacheKey = precacheKeyForRequest(request);
        if (cacheKey) {
            event.respondWith(servePrecached(cacheKey, request));
            return;
        }

        if (NAVIGATE_FALLBACK && request.mode === 'navigate' && !isDenylisted(request.url)) {
            const fallbackKey = PRECACHE_KEYS.get(toAbsolute(NAVIGATE_FALLBACK));
            if (fallbackKey) {
                event.respondWith(servePrecached(fallbackKey, new Request(toAbsolute(NAVIGATE_FALLBACK))));
                return;
            }
        }
    }

    for (const rule of RUNTIME_CACHING) {
        if (request.method === rule.method && new RegExp(rule.urlPattern).test(request.url)) {
            event.respondWith(STRATEGIES[rule.handler](rule, request));
            return;
        }
    }

    // Default: let the browser handle it
});

// Handle messages from clients
self.addEventListener('message', (event) => {
    if (event.data && event.data.type === 'SKIP_WAITING') {
        self.skipWaiting();
    }
});
"""


def render_service_worker(config: GenerateSWConfig, entries: list[ManifestEntry]) -> str:
    """Render the service worker source for the given manifest entries."""
    manifest = [entry.to_dict() for entry in entries]
    rules = [_rule_to_dict(rule, config.cache_id) for rule in config.runtime_caching]

    header = f"""// Service Worker generated by swbuild
// Precaches {len(entries)} URLs

const CACHE_ID = {_js(config.cache_id)};
const PRECACHE_CACHE = `${{CACHE_ID}}-precache-v1`;

const PRECACHE_MANIFEST = {_js(manifest)};

const RUNTIME_CACHING = {_js(rules)};

const NAVIGATE_FALLBACK = {_js(config.navigate_fallback)};
const NAVIGATE_FALLBACK_DENYLIST = {_js(config.navigate_fallback_denylist)};
const IGNORE_URL_PARAMETERS = {_js(config.ignore_url_parameters_matching)};
const DIRECTORY_INDEX = {_js(config.directory_index)};

const SKIP_WAITING = {_js(config.skip_waiting)};
const CLIENTS_CLAIM = {_js(config.clients_claim)};
const CLEANUP_OUTDATED_CACHES = {_js(config.cleanup_outdated_caches)};
"""
    return header + _SW_RUNTIME_JS
