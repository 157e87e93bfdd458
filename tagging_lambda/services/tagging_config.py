"""Tagging configuration resolved from SSM Parameter Store.

Values fetched here (prompts, block-list, tag map, master category list)
are cached on the service instance for the lifetime of the process and
never refreshed. The handler holds one instance per warm container.

Parameter layout:
- {prompt_base_path}TaggingSystem: shared system prompt
- {prompt_base_path}Tagging<source lowercase>: per-source prompt
- tag-blocklist: comma-separated labels that must never be emitted
- tag-map: JSON object of label variant -> canonical label
- master-tag-categories: comma-separated category list
"""

import asyncio
import json
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TypeVar

from tagging_lambda.core.config import Settings, get_settings
from tagging_lambda.core.logging import get_logger
from tagging_lambda.integrations.ssm import ParameterNotFoundError, ParameterStoreClient

logger = get_logger(__name__)

T = TypeVar("T")


class ConfigMissingError(Exception):
    """Raised when a required configuration parameter is missing or empty."""

    def __init__(self, message: str, parameter_name: str | None = None) -> None:
        super().__init__(message)
        self.parameter_name = parameter_name


class ConfigInvalidError(Exception):
    """Raised when a configuration parameter cannot be parsed."""

    def __init__(self, message: str, parameter_name: str | None = None) -> None:
        super().__init__(message)
        self.parameter_name = parameter_name


@dataclass(frozen=True)
class TaggingRules:
    """Read-only block-list and tag map used by the label normalizer."""

    blocklist: frozenset[str] = frozenset()
    tag_map: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


def parse_csv(value: str) -> list[str]:
    """Split a comma-separated parameter, trimming and dropping empty entries."""
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_tag_map(value: str, parameter_name: str | None = None) -> dict[str, str]:
    """Parse the tag map JSON into a lowercase-keyed dict.

    A JSON null is treated as an empty map.

    Raises:
        ConfigInvalidError: If the value is not a JSON object of strings.
    """
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise ConfigInvalidError(
            f"Tag map parameter '{parameter_name}' is not valid JSON: {e}",
            parameter_name=parameter_name,
        ) from e

    if parsed is None:
        logger.warning(
            "Tag map JSON is null, using empty map",
            extra={"parameter_name": parameter_name},
        )
        return {}

    if not isinstance(parsed, dict) or not all(
        isinstance(key, str) and isinstance(mapped, str)
        for key, mapped in parsed.items()
    ):
        raise ConfigInvalidError(
            f"Tag map parameter '{parameter_name}' must be a JSON object "
            "of string keys and string values",
            parameter_name=parameter_name,
        )

    return {key.strip().lower(): mapped for key, mapped in parsed.items()}


class TaggingConfigService:
    """Fetches and caches tagging configuration from Parameter Store."""

    def __init__(
        self,
        parameter_store: ParameterStoreClient,
        settings: Settings | None = None,
    ) -> None:
        self._parameter_store = parameter_store
        self._settings = settings or get_settings()
        self._cache: dict[str, Any] = {}
        self._lock = asyncio.Lock()

    def clear_cache(self) -> None:
        """Drop every cached value."""
        self._cache.clear()

    async def _cached(
        self, cache_key: str, loader: Callable[[], Awaitable[T]]
    ) -> T:
        if cache_key in self._cache:
            return self._cache[cache_key]  # type: ignore[no-any-return]

        async with self._lock:
            # Another coroutine may have loaded it while we waited
            if cache_key in self._cache:
                return self._cache[cache_key]  # type: ignore[no-any-return]
            value = await loader()
            self._cache[cache_key] = value
            return value

    async def _fetch(self, parameter_name: str) -> str:
        try:
            return await self._parameter_store.get_parameter(parameter_name)
        except ParameterNotFoundError as e:
            raise ConfigMissingError(str(e), parameter_name=parameter_name) from e

    async def _get_prompt(self, prompt_name: str) -> str:
        parameter_name = f"{self._settings.prompt_base_path}{prompt_name}"

        async def _load() -> str:
            logger.info(
                "Prompt not cached, fetching from Parameter Store",
                extra={"parameter_name": parameter_name},
            )
            return await self._fetch(parameter_name)

        return await self._cached(f"prompt:{prompt_name}", _load)

    async def get_combined_prompt(self, source_type: str) -> str:
        """Build the prompt for a tender source.

        Layout: system prompt, the master tag list, then the source prompt,
        separated by blank lines.

        Raises:
            ValueError: If source_type is blank.
            ConfigMissingError: If a prompt or the master list is missing.
        """
        if not source_type or not source_type.strip():
            raise ValueError("Source type cannot be null or empty.")

        settings = self._settings
        system_prompt = await self._get_prompt(settings.tagging_system_prompt_name)
        source_prompt = await self._get_prompt(
            f"{settings.tagging_source_prompt_prefix}{source_type.strip().lower()}"
        )
        master_tags = await self.get_master_categories()
        master_list = ", ".join(f'"{tag}"' for tag in master_tags)

        logger.debug(
            "Combined tagging prompt resolved", extra={"source_type": source_type}
        )
        return f"{system_prompt}\n\nMASTER TAG LIST: [{master_list}]\n\n{source_prompt}"

    async def get_blocklist(self) -> frozenset[str]:
        """Lowercase labels that must never be emitted."""
        parameter_name = self._settings.tag_blocklist_parameter

        async def _load() -> frozenset[str]:
            value = await self._fetch(parameter_name)
            blocklist = frozenset(item.lower() for item in parse_csv(value))
            logger.info(
                "Tag blocklist fetched and cached", extra={"count": len(blocklist)}
            )
            return blocklist

        return await self._cached("blocklist", _load)

    async def get_tag_map(self) -> Mapping[str, str]:
        """Lowercase label variant -> canonical label (read-only)."""
        parameter_name = self._settings.tag_map_parameter

        async def _load() -> Mapping[str, str]:
            value = await self._fetch(parameter_name)
            try:
                tag_map = parse_tag_map(value, parameter_name)
            except ConfigInvalidError:
                logger.error(
                    "Failed to parse tag map from Parameter Store",
                    extra={"parameter_name": parameter_name, "value": value[:500]},
                    exc_info=True,
                )
                raise
            logger.info("Tag map fetched and cached", extra={"count": len(tag_map)})
            return MappingProxyType(tag_map)

        return await self._cached("tag_map", _load)

    async def get_master_categories(self) -> tuple[str, ...]:
        """Ordered master category list offered to the model."""
        parameter_name = self._settings.master_tag_list_parameter

        async def _load() -> tuple[str, ...]:
            categories = tuple(parse_csv(await self._fetch(parameter_name)))
            logger.info(
                "Master category list fetched and cached",
                extra={"count": len(categories)},
            )
            return categories

        return await self._cached("master_categories", _load)

    async def get_rules(self) -> TaggingRules:
        """Block-list and tag map bundled for the normalizer."""
        return TaggingRules(
            blocklist=await self.get_blocklist(),
            tag_map=await self.get_tag_map(),
        )
