"""Strip fields from a live object that are absent from its configuration."""

from typing import Any


def _remove_fields(config: Any, live: Any) -> Any:
    if isinstance(config, dict) and isinstance(live, dict):
        return remove_map_fields(config, live)
    if isinstance(config, list) and isinstance(live, list):
        return remove_list_fields(config, live)
    return live


def remove_map_fields(config: dict[str, Any], live: dict[str, Any]) -> dict[str, Any]:
    """Return the parts of ``live`` whose keys also exist in ``config``, recursively."""
    result: dict[str, Any] = {}
    for key, config_value in config.items():
        if key not in live:
            continue
        live_value = live[key]
        if live_value is not None:
            live_value = _remove_fields(config_value, live_value)
        result[key] = live_value
    return result


def remove_list_fields(config: list[Any], live: list[Any]) -> list[Any]:
    """Strip each element of ``live`` against the matching ``config`` element.

    Elements of ``live`` beyond the length of ``config`` are kept as they are,
    so they still show up in a diff.
    """
    result: list[Any] = []
    for index, live_value in enumerate(live):
        if index < len(config) and live_value is not None:
            live_value = _remove_fields(config[index], live_value)
        result.append(live_value)
    return result