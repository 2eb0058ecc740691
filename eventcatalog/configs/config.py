"""Configuration loader for venue mappings."""

from dataclasses import dataclass
from pathlib import Path

import yaml

from eventcatalog.configs.settings import get_settings


@dataclass(frozen=True)
class VenueMapping:
    """Link between a catalog venue slug and its ticket-platform venue."""

    venue_slug: str
    ticket_venue_id: str
    ticket_venue_name: str = ""
    aliases: tuple[str, ...] = ()


def _substitute_placeholders(content: str) -> str:
    """Replace ${SETTING} placeholders with values from the settings object."""
    for key, value in get_settings().model_dump().items():
        placeholder = f"${{{key}}}"
        if placeholder in content:
            val_str = (
                value.get_secret_value()
                if hasattr(value, "get_secret_value")
                else str(value)
            )
            content = content.replace(placeholder, val_str)
    return content


def load_venue_config(path: Path | None = None) -> dict:
    """Load the raw YAML venue configuration."""
    config_path = path or get_settings().VENUES_CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Missing config at {config_path}")

    with open(config_path, encoding="utf-8") as f:
        return yaml.safe_load(_substitute_placeholders(f.read())) or {}


def load_venue_mappings(path: Path | None = None) -> dict[str, VenueMapping]:
    """
    Return venue slug -> VenueMapping for every venue with a ticket-platform id.

    Entries without an id are skipped; they exist in the file so that a
    venue can be listed before its external id is known.
    """
    config = load_venue_config(path)
    mappings: dict[str, VenueMapping] = {}
    for slug, entry in (config.get("ticket_venues") or {}).items():
        entry = entry or {}
        venue_id = entry.get("ticket_venue_id")
        if not venue_id:
            continue
        mappings[slug] = VenueMapping(
            venue_slug=slug,
            ticket_venue_id=str(venue_id),
            ticket_venue_name=entry.get("ticket_venue_name", ""),
            aliases=tuple(entry.get("aliases") or ()),
        )
    return mappings
