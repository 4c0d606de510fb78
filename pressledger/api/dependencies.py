# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Dependency injection utilities for FastAPI endpoints.

Assumptions:
- There is no authentication; callers identify themselves with the
  X-Actor-Id and X-Actor-Name headers for audit attribution
- Mutating endpoints depend on get_actor, read-only ones don't
"""
from typing import Optional

from fastapi import Header, HTTPException, status

from pressledger.database.session import get_db
from pressledger.models import Actor

# Re-export commonly used dependencies
__all__ = [
    'get_db',
    'get_actor',
]


def get_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_name: Optional[str] = Header(None),
) -> Actor:
    """Dependency to get the actor performing a mutation.

    Raises:
        HTTPException: 400 if X-Actor-Id is missing or not a positive integer
    """
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Actor-Id header is required"
        )

    try:
        actor_id = int(x_actor_id)
    except ValueError:
        actor_id = 0
    if actor_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"invalid X-Actor-Id header: {x_actor_id!r}"
        )

    return Actor(id=actor_id, name=x_actor_name or f"actor {actor_id}")
