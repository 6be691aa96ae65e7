"""
Aggregate cache keys.

key = scope + ":" + SHA256(sorted params)[:12]

- Same scope + same parameters = identical key (cache hit)
- Parameter order and None-valued parameters never change the key
- Scope is kept readable as the key prefix so invalidation can match on it
"""

import hashlib
import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def canonical_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop unset parameters and order the rest by name."""
    if not params:
        return {}
    return {name: params[name] for name in sorted(params) if params[name] is not None}


def aggregate_key(scope: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Generate a deterministic cache key for an aggregate query."""
    canonical = canonical_params(params)
    if not canonical:
        return scope

    key_data = json.dumps(canonical, sort_keys=True, default=str)
    digest = hashlib.sha256(key_data.encode()).hexdigest()[:12]
    key = f"{scope}:{digest}"

    logger.debug(f"Generated key: {key} (scope={scope}, params={canonical})")
    return key


def key_scope(key: str) -> str:
    return key.split(":", 1)[0]
