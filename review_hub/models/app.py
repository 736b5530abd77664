"""
Data model for a tracked app and its per-source scraping configuration.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any, List

from review_hub.config.settings import APP_STORE, PLAY_STORE, SUPPORTED_FREQUENCIES
from review_hub.exceptions import InvalidAppConfig


@dataclass
class App:
    """
    An app whose reviews are collected from one or both stores.

    A store is enabled when its external id is set; its regions and
    frequency must then be set too, and must be empty otherwise.

    Attributes:
        id: Registry-assigned id, stable for the app's lifetime
        name: Display name
        icon: Optional icon URL
        app_store_id: Numeric App Store id, None when disabled
        play_store_id: Google Play package name, None when disabled
        app_store_regions: Region codes scraped on the App Store
        play_store_regions: Region codes scraped on Google Play
        app_store_frequency: hourly, daily, weekly or monthly
        play_store_frequency: hourly, daily, weekly or monthly
        rating: Mean rating over all stored reviews (derived)
        review_count: Number of stored reviews (derived)
        last_updated: ISO timestamp of the last recompute or config edit
    """

    id: str
    name: str
    icon: Optional[str] = None
    app_store_id: Optional[str] = None
    play_store_id: Optional[str] = None
    app_store_regions: List[str] = field(default_factory=list)
    play_store_regions: List[str] = field(default_factory=list)
    app_store_frequency: Optional[str] = None
    play_store_frequency: Optional[str] = None
    rating: float = 0.0
    review_count: int = 0
    last_updated: Optional[str] = None

    def external_id(self, store: str) -> Optional[str]:
        return self.app_store_id if store == APP_STORE else self.play_store_id

    def regions(self, store: str) -> List[str]:
        return self.app_store_regions if store == APP_STORE else self.play_store_regions

    def frequency(self, store: str) -> Optional[str]:
        return self.app_store_frequency if store == APP_STORE else self.play_store_frequency

    def enabled_stores(self) -> List[str]:
        """Stores with an external id and at least one region."""
        return [
            store for store in (APP_STORE, PLAY_STORE)
            if self.external_id(store) and self.regions(store)
        ]

    def validate(self) -> None:
        """
        Check the per-store field invariants.

        Raises:
            InvalidAppConfig: if the configuration is inconsistent
        """
        if not self.name:
            raise InvalidAppConfig("App name is required")
        if not self.app_store_id and not self.play_store_id:
            raise InvalidAppConfig(
                "At least one of appStoreId or playStoreId must be set"
            )

        for store in (APP_STORE, PLAY_STORE):
            enabled = bool(self.external_id(store))
            regions = self.regions(store)
            frequency = self.frequency(store)

            if enabled:
                if not regions:
                    raise InvalidAppConfig(f"{store}: at least one region is required")
                if frequency not in SUPPORTED_FREQUENCIES:
                    raise InvalidAppConfig(
                        f"{store}: frequency must be one of {SUPPORTED_FREQUENCIES}"
                    )
            elif regions or frequency:
                raise InvalidAppConfig(
                    f"{store}: regions and frequency require an external id"
                )

    def with_config(self, **changes: Any) -> 'App':
        """Copy of this app with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "appStoreId": self.app_store_id,
            "playStoreId": self.play_store_id,
            "appStoreRegions": list(self.app_store_regions),
            "playStoreRegions": list(self.play_store_regions),
            "appStoreFrequency": self.app_store_frequency,
            "playStoreFrequency": self.play_store_frequency,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'App':
        """
        Create an App from its stored or submitted dictionary form.

        Region codes are upper-cased and de-duplicated in order.
        """
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            icon=data.get("icon") or None,
            app_store_id=_optional_str(data.get("appStoreId")),
            play_store_id=_optional_str(data.get("playStoreId")),
            app_store_regions=_normalize_regions(data.get("appStoreRegions")),
            play_store_regions=_normalize_regions(data.get("playStoreRegions")),
            app_store_frequency=data.get("appStoreFrequency") or None,
            play_store_frequency=data.get("playStoreFrequency") or None,
            rating=float(data.get("rating") or 0),
            review_count=int(data.get("reviewCount") or 0),
            last_updated=data.get("lastUpdated") or None,
        )


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _normalize_regions(regions: Any) -> List[str]:
    seen: List[str] = []
    for region in regions or []:
        code = str(region).strip()
        if not code:
            continue
        # Keep "en-US" as language-COUNTRY, upper-case plain codes
        if "-" in code:
            lang, _, country = code.partition("-")
            code = f"{lang.lower()}-{country.upper()}"
        else:
            code = code.upper()
        if code not in seen:
            seen.append(code)
    return seen
