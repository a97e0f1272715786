"""
Submitting a filled upload wizard from the console.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Optional

from console.client import FileTuple, StorefrontClient
from shared.wizard import (
    GRAPHICS,
    RELEASE,
    GraphicsData,
    UploadWizard,
    accept_release_file,
)


class WizardIncomplete(ValueError):
    def __init__(self, step: int, message: str):
        super().__init__(message)
        self.step = step
        self.message = message


@dataclass
class WizardFiles:
    icon: Optional[FileTuple] = None
    feature_graphic: Optional[FileTuple] = None
    phone_screenshots: List[FileTuple] = field(default_factory=list)
    tablet_screenshots: List[FileTuple] = field(default_factory=list)
    release: Optional[FileTuple] = None


def wizard_payload(wizard: UploadWizard) -> dict:
    return {
        "store_listing": asdict(wizard.store_listing),
        "graphics": asdict(wizard.graphics),
        "monetization": asdict(wizard.monetization),
        "release": asdict(wizard.release),
    }


def submit_wizard(
    client: StorefrontClient,
    wizard: UploadWizard,
    files: WizardFiles,
    package_name: Optional[str] = None,
) -> dict:
    """
    Attach the files to the wizard, validate every step locally and post the
    submission. Raises WizardIncomplete before any request when a step fails.
    """
    graphics = GraphicsData(
        icon=files.icon[0] if files.icon else None,
        feature_graphic=files.feature_graphic[0] if files.feature_graphic else None,
    )
    try:
        for name, _, _ in files.phone_screenshots:
            graphics.add_screenshot(name)
        for name, _, _ in files.tablet_screenshots:
            graphics.add_screenshot(name, tablet=True)
    except ValueError as exc:
        raise WizardIncomplete(GRAPHICS, str(exc)) from exc
    wizard.graphics = graphics

    if files.release:
        name, data, _ = files.release
        try:
            accept_release_file(wizard.release, name, len(data))
        except ValueError as exc:
            raise WizardIncomplete(RELEASE, str(exc)) from exc

    failure = wizard.first_error()
    if failure:
        raise WizardIncomplete(*failure)

    return client.upload_app(
        wizard_payload(wizard),
        icon=files.icon,
        feature_graphic=files.feature_graphic,
        phone_screenshots=files.phone_screenshots,
        tablet_screenshots=files.tablet_screenshots,
        release=files.release,
        package_name=package_name,
    )
