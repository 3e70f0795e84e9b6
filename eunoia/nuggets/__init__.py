# -*- coding: utf-8 -*-
"""Learning nuggets domain (rolling refill).

Shared nugget pool, per-user progress, allocation, LLM generation and the
one-shot bootstrap/migration jobs.
"""

from .allocator import NuggetAllocator
from .generator import NuggetGenerator
from .models import Category, LLMProvider, Nugget, ProgressRecord
from .progress import ProgressTracker
from .service import NuggetService, build_memory_service, build_sqlite_service

__all__ = [
    "Category",
    "LLMProvider",
    "Nugget",
    "NuggetAllocator",
    "NuggetGenerator",
    "NuggetService",
    "ProgressRecord",
    "ProgressTracker",
    "build_memory_service",
    "build_sqlite_service",
]
