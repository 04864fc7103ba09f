"""Per-repository configuration persisted in ``config.json``."""
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from anchored_notes.exceptions import ConfigurationError
from anchored_notes.models.schema import RepositoryConfiguration
from anchored_notes.paths import RepositoryLayout
from anchored_notes.storage.filesystem import FileSystem, LocalFileSystem

logger = logging.getLogger(__name__)

# Sections merged key-by-key with their defaults
_SECTIONS = ("limits", "storage", "tags", "enabled_tools")


def _canonical_keys(model_cls, data: Dict[str, Any], strict: bool) -> Dict[str, Any]:
    """Rewrite alias keys (``noteMaxLength``) to field names (``note_max_length``).

    Unknown keys are kept when ``strict`` so validation can reject them,
    and dropped otherwise.
    """
    lookup = {}
    for name, field in model_cls.model_fields.items():
        lookup[name] = name
        if field.alias:
            lookup[field.alias] = name
    return {
        lookup.get(k, k): v for k, v in data.items() if strict or k in lookup
    }


def merge_configuration(
    base: RepositoryConfiguration, partial: Dict[str, Any], strict: bool = True
) -> RepositoryConfiguration:
    """Deep-merge ``partial`` into ``base`` section by section.

    Keys may use either snake_case field names or the on-disk camelCase
    names. With ``strict`` unknown keys are an error; without it they are
    ignored, which is how hand-edited files are read.

    Raises:
        pydantic.ValidationError: If the merged result is not a valid
            configuration.
    """
    merged = base.model_dump()
    for name, value in _canonical_keys(RepositoryConfiguration, partial, strict).items():
        if name in _SECTIONS and isinstance(value, dict):
            if name == "enabled_tools":
                merged[name] = {**merged[name], **value}
            else:
                section_cls = RepositoryConfiguration.model_fields[name].annotation
                merged[name] = {
                    **merged[name],
                    **_canonical_keys(section_cls, value, strict),
                }
        else:
            merged[name] = value
    return RepositoryConfiguration.model_validate(merged)


def _is_valid(data: Dict[str, Any]) -> bool:
    try:
        RepositoryConfiguration.model_validate(data)
    except PydanticValidationError:
        return False
    return True


def repair_configuration(raw: Dict[str, Any]) -> Tuple[RepositoryConfiguration, List[str]]:
    """Build a configuration from a hand-edited file, one field at a time.

    Each value is laid over the defaults on its own. A value that would
    make the configuration invalid is dropped and its default kept, so one
    bad entry never costs the other settings. Unknown keys are ignored.

    Returns:
        The repaired configuration and the dotted names of dropped values.
    """
    merged = RepositoryConfiguration().model_dump()
    dropped: List[str] = []
    for name, value in _canonical_keys(RepositoryConfiguration, raw, strict=False).items():
        if name in _SECTIONS and isinstance(value, dict):
            if name == "enabled_tools":
                entries = value
            else:
                section_cls = RepositoryConfiguration.model_fields[name].annotation
                entries = _canonical_keys(section_cls, value, strict=False)
            for key, entry in entries.items():
                candidate = {**merged, name: {**merged[name], key: entry}}
                if _is_valid(candidate):
                    merged = candidate
                else:
                    dropped.append(f"{name}.{key}")
        else:
            candidate = {**merged, name: value}
            if _is_valid(candidate):
                merged = candidate
            else:
                dropped.append(name)
    return RepositoryConfiguration.model_validate(merged), dropped


class ConfigurationStore:
    """Reads, merges and atomically writes one repository's configuration.

    A missing or unreadable file is replaced by the defaults. A file that
    only carries some keys is merged over the defaults on read, so newly
    introduced settings always have a value.
    """

    def __init__(self, layout: RepositoryLayout, filesystem: Optional[FileSystem] = None):
        self.layout = layout
        self.fs = filesystem or LocalFileSystem()

    def _write(self, configuration: RepositoryConfiguration) -> None:
        self.fs.write_text_atomic(
            self.layout.config_file,
            json.dumps(configuration.to_json_dict(), indent=2),
        )

    def get(self) -> RepositoryConfiguration:
        """Return the effective configuration, creating it if needed.

        Unparsable files are replaced by the defaults. Values that fail
        validation fall back to their defaults one by one and the repaired
        configuration is written back.
        """
        path = self.layout.config_file
        if not self.fs.exists(path):
            defaults = RepositoryConfiguration()
            self._write(defaults)
            return defaults

        try:
            raw = json.loads(self.fs.read_text(path))
            if not isinstance(raw, dict):
                raise ValueError("configuration root must be an object")
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Configuration at {path} is unusable, restoring defaults: {e}")
            defaults = RepositoryConfiguration()
            self._write(defaults)
            return defaults

        configuration, dropped = repair_configuration(raw)
        if dropped:
            logger.warning(
                f"Configuration at {path} had invalid values, using defaults for: "
                f"{', '.join(dropped)}"
            )
            self._write(configuration)
        return configuration

    def update(self, partial: Dict[str, Any]) -> RepositoryConfiguration:
        """Merge ``partial`` into the current configuration and persist it.

        Raises:
            ConfigurationError: If the merged configuration is invalid.
        """
        current = self.get()
        try:
            updated = merge_configuration(current, partial)
        except PydanticValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            key = ".".join(str(p) for p in first.get("loc", ()))
            raise ConfigurationError(
                f"Invalid configuration update: {first.get('msg', str(e))}",
                config_key=key or None,
            ) from e
        self._write(updated)
        logger.info(f"Updated configuration for {self.layout.root}")
        return updated

    def reset(self) -> RepositoryConfiguration:
        """Overwrite the stored configuration with the defaults."""
        defaults = RepositoryConfiguration()
        self._write(defaults)
        return defaults

    def has_custom_configuration(self) -> bool:
        return self.fs.exists(self.layout.config_file)

    def set_tag_enforcement(self, enabled: bool) -> RepositoryConfiguration:
        return self.update({"tags": {"enforce_allowed_tags": enabled}})

    def is_tag_enforcement_enabled(self) -> bool:
        return self.get().tags.enforce_allowed_tags

    def is_tool_enabled(self, tool_name: str) -> bool:
        """Unknown tools are treated as enabled."""
        return self.get().enabled_tools.get(tool_name, True)
