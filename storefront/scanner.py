"""
Release scanning: SDK detection, a hash blocklist and package clone checks.
"""

from __future__ import annotations

import hashlib
import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from shared.types import RiskLevel
from storefront.db import DbClient

logger = logging.getLogger(__name__)

# (display name, markers). Markers are matched against the lower-cased file
# name and against archive entry paths with "/" read as ".".
AD_NETWORKS: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("Google AdMob", ("com.google.android.gms.ads", "admob")),
    ("Unity Ads", ("unity3d.ads",)),
    ("AppLovin", ("applovin",)),
    ("Facebook Ads", ("facebook.ads",)),
    ("ironSource", ("ironsource",)),
)
IAP_SDKS: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("Google Play Billing", ("com.android.vending.billing", "billing")),
    ("IAP SDK", ("iap", "in-app-purchase")),
)


@dataclass
class ScanReport:
    sha256: str
    risk_level: RiskLevel
    ad_networks: List[str] = field(default_factory=list)
    iap_sdks: List[str] = field(default_factory=list)
    entry_count: int = 0
    scanned_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def contains_ads(self) -> bool:
        return bool(self.ad_networks)

    @property
    def in_app_purchases(self) -> bool:
        return bool(self.iap_sdks)

    def as_dict(self) -> dict:
        return {
            "sha256": self.sha256,
            "risk_level": str(self.risk_level),
            "ad_networks": list(self.ad_networks),
            "iap_sdks": list(self.iap_sdks),
            "contains_ads": self.contains_ads,
            "in_app_purchases": self.in_app_purchases,
            "entry_count": self.entry_count,
            "scanned_at": self.scanned_at,
        }


@dataclass
class CloneCheckResult:
    package_name: str
    is_clone: bool
    matches: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "package_name": self.package_name,
            "is_clone": self.is_clone,
            "matches": list(self.matches),
        }


def _archive_entries(data: bytes) -> Optional[List[str]]:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            return archive.namelist()
    except (zipfile.BadZipFile, OSError):
        return None


def _detect(
    haystacks: Iterable[str], catalog: Sequence[Tuple[str, Tuple[str, ...]]]
) -> List[str]:
    found: List[str] = []
    texts = list(haystacks)
    for name, markers in catalog:
        if any(marker in text for text in texts for marker in markers):
            found.append(name)
    return found


def scan_release(
    file_name: str,
    data: bytes,
    blocked_hashes: Iterable[str] = (),
) -> ScanReport:
    """Inspect an APK/AAB payload and report detected SDKs and a risk level."""
    digest = hashlib.sha256(data).hexdigest()
    entries = _archive_entries(data)
    haystacks = [(file_name or "").lower()]
    if entries:
        haystacks.extend(entry.lower().replace("/", ".") for entry in entries)

    if digest in {h.lower() for h in blocked_hashes}:
        risk = RiskLevel.MALICIOUS
    elif entries is None:
        risk = RiskLevel.SUSPICIOUS
    else:
        risk = RiskLevel.CLEAN

    report = ScanReport(
        sha256=digest,
        risk_level=risk,
        ad_networks=_detect(haystacks, AD_NETWORKS),
        iap_sdks=_detect(haystacks, IAP_SDKS),
        entry_count=len(entries or []),
    )
    logger.info(
        "Scanned %s (%s): risk=%s ads=%s iap=%s",
        file_name,
        digest[:12],
        report.risk_level,
        report.ad_networks,
        report.iap_sdks,
    )
    return report


def check_clone(
    db: DbClient, package_name: str, developer_id: Optional[str] = None
) -> CloneCheckResult:
    """
    A package is a clone when another developer already listed an app with
    the same package name.
    """
    package_name = (package_name or "").strip()
    matches = [
        app.app_id
        for app in db.find_apps_by_package(package_name)
        if developer_id is None or app.developer_id != developer_id
    ]
    return CloneCheckResult(
        package_name=package_name, is_clone=bool(matches), matches=matches
    )
