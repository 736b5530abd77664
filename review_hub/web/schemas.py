"""
Request bodies accepted by the HTTP API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class AppConfigIn(BaseModel):
    """App configuration as submitted by the dashboard."""
    name: str
    icon: Optional[str] = None
    appStoreId: Optional[str] = None
    playStoreId: Optional[str] = None
    appStoreRegions: List[str] = []
    playStoreRegions: List[str] = []
    appStoreFrequency: Optional[str] = None
    playStoreFrequency: Optional[str] = None


class AppConfigUpdate(BaseModel):
    """Partial App configuration; only the fields sent are changed."""
    name: Optional[str] = None
    icon: Optional[str] = None
    appStoreId: Optional[str] = None
    playStoreId: Optional[str] = None
    appStoreRegions: Optional[List[str]] = None
    playStoreRegions: Optional[List[str]] = None
    appStoreFrequency: Optional[str] = None
    playStoreFrequency: Optional[str] = None


class ScrapeRequest(BaseModel):
    """Body of an ad-hoc scrape; appConfig need not be a stored app."""
    appConfig: Optional[Dict[str, Any]] = None
