"""
Shared route dependencies — the record store and the active academic settings.
"""

from fastapi import Depends, Request

from core.gradebook import load_academic_settings
from core.models import AcademicSettings
from core.store import RecordStore


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def get_settings(store: RecordStore = Depends(get_store)) -> AcademicSettings:
    return load_academic_settings(store)
