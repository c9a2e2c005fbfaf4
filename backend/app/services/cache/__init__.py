"""Async Redis caching service using Upstash.

Provides a read-through cache over the durable store:
- String (SET/GET): JSON payloads for entity views and search results
- KEYS + DEL: pattern invalidation after committed mutations
- Session records with a 24 hour TTL

Features:
- Deterministic key registry for entities and search queries
- Per-operation timeout; failures and timeouts degrade to miss/no-op
- Mutation-to-pattern invalidation table
"""

from app.services.cache import keys
from app.services.cache.constants import (
    ADMIN_CLEARABLE_PREFIXES,
    KEY_PREFIX_COURSE,
    KEY_PREFIX_COURSES,
    KEY_PREFIX_SEARCH,
    KEY_PREFIX_SESSION,
    KEY_PREFIX_TEACHER,
    KEY_PREFIX_TEACHERS,
    KEY_PREFIX_USER,
    LEGACY_SEARCH,
    LEGACY_STUDENT_DETAILS,
    LEGACY_STUDENT_ENROLLED_COURSES,
    LEGACY_USER_DATA,
    TTL_ENTITY,
    TTL_SEARCH,
    TTL_SESSION,
)
from app.services.cache.invalidation import Mutation, patterns_for
from app.services.cache.service import CacheService, create_cache_service, get_cache_service

__all__ = [
    # TTL constants
    "TTL_ENTITY",
    "TTL_SEARCH",
    "TTL_SESSION",
    # Key prefix constants
    "KEY_PREFIX_SESSION",
    "KEY_PREFIX_USER",
    "KEY_PREFIX_COURSE",
    "KEY_PREFIX_COURSES",
    "KEY_PREFIX_TEACHER",
    "KEY_PREFIX_TEACHERS",
    "KEY_PREFIX_SEARCH",
    "ADMIN_CLEARABLE_PREFIXES",
    "LEGACY_SEARCH",
    "LEGACY_STUDENT_DETAILS",
    "LEGACY_STUDENT_ENROLLED_COURSES",
    "LEGACY_USER_DATA",
    # Key registry and invalidation
    "keys",
    "Mutation",
    "patterns_for",
    # Service
    "CacheService",
    "create_cache_service",
    "get_cache_service",
]
