"""passage_rag.config.global_config

Global configuration loader and accessors.

This module defines a lightweight wrapper around a raw YAML configuration
dictionary, providing validated, cached access to the configuration sections
used across the retrieval stack. Every section is optional; missing keys fall
back to the package defaults.

Environment variables of the form ``${VAR}`` are expanded recursively in all
string values at load time.

Classes
-------
GlobalConfig
    Loader and accessor for global project configuration.
"""

import os
import yaml
from pathlib import Path
from functools import cached_property
from typing import Any

from passage_rag.pipelines.ingestion_pipeline import DEFAULT_INITIAL_TOP_K, DEFAULT_QUERY_CONTEXT_CHARS
from passage_rag.retrieval.retriever import DEFAULT_TOP_K
from passage_rag.retrieval.text_splitter import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP


def _expand_env(obj):
    """Recursively expand environment variables in a nested structure.

    This function walks nested dictionaries and lists and applies
    :func:`os.path.expandvars` to any string values, expanding patterns of the
    form ``${VAR}`` using the current process environment.

    Parameters
    ----------
    obj : Any
        Object to expand. Supported types are dictionaries, lists, and strings.
        Other types are returned unchanged.

    Returns
    -------
    Any
        A structure of the same shape as ``obj`` with environment variables
        expanded in all string values.
    """
    if isinstance(obj, dict):
        return {k: _expand_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env(v) for v in obj]
    if isinstance(obj, str):
        return os.path.expandvars(obj)
    return obj


def _int_setting(section: dict, section_name: str, key: str, default: int, *, minimum: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"'{section_name}.{key}' must be an integer, got {type(value).__name__}.")
    if value < minimum:
        raise ValueError(f"'{section_name}.{key}' must be >= {minimum}, got {value}.")
    return value


class GlobalConfig:
    """Loader and accessor for global project configuration.

    This class wraps a raw configuration dictionary (typically loaded from YAML)
    and exposes validated, cached accessors for the configuration sections.

    Parameters
    ----------
    raw : dict
        Raw configuration data as loaded from a YAML file.
    config_path : Path or None, optional
        Absolute path of the loaded file, used to resolve relative paths.
    """

    def __init__(
            self,
            raw: dict | None,
            config_path: Path | None = None,
        ):
        self.raw = raw or {}
        self.config_path = config_path

    @classmethod
    def load(
            cls,
            path: str | Path,
        ) -> "GlobalConfig":
        """Load configuration from a YAML file.

        Parameters
        ----------
        path : str or Path
            Path to the YAML configuration file.

        Returns
        -------
        GlobalConfig
            An instance initialised with the loaded and environment-expanded data.

        Notes
        -----
        All string values in the loaded YAML are processed with recursive
        environment-variable expansion (``${VAR}``) via :func:`os.path.expandvars`.
        """
        cfg_path = Path(path).expanduser().resolve()
        with cfg_path.open("r") as f:
            data = yaml.safe_load(f)
        data = _expand_env(data)
        return cls(data, config_path=cfg_path)

    def _section(self, name: str) -> dict:
        section = self.raw.get(name)
        if section is None:
            return {}
        if not isinstance(section, dict):
            raise TypeError(f"'{name}' must be a mapping, got {type(section).__name__}.")
        return section

    @cached_property
    def embedder(self) -> dict:
        """Return the embedder configuration section.

        Returns
        -------
        dict
            The ``embedder`` section, or an empty dict (all defaults).
        """
        return self._section("embedder")

    @cached_property
    def chunking(self) -> dict[str, int]:
        """Return validated chunking settings.

        Returns
        -------
        dict[str, int]
            ``chunk_size`` (>= 1) and ``overlap`` (>= 0).

        Raises
        ------
        TypeError
            If a value is not an integer.
        ValueError
            If a value is out of range.
        """
        section = self._section("chunking")
        return {
            "chunk_size": _int_setting(section, "chunking", "chunk_size", DEFAULT_CHUNK_SIZE, minimum=1),
            "overlap": _int_setting(section, "chunking", "overlap", DEFAULT_OVERLAP, minimum=0),
        }

    @cached_property
    def retrieval(self) -> dict[str, int]:
        """Return validated retrieval settings.

        Returns
        -------
        dict[str, int]
            ``top_k``, ``initial_top_k`` and ``query_context_chars``.
        """
        section = self._section("retrieval")
        return {
            "top_k": _int_setting(section, "retrieval", "top_k", DEFAULT_TOP_K, minimum=0),
            "initial_top_k": _int_setting(
                section, "retrieval", "initial_top_k", DEFAULT_INITIAL_TOP_K, minimum=0
            ),
            "query_context_chars": _int_setting(
                section, "retrieval", "query_context_chars", DEFAULT_QUERY_CONTEXT_CHARS, minimum=1
            ),
        }

    @cached_property
    def storage(self) -> dict[str, Any]:
        """Return the storage configuration section.

        A relative ``persist_path`` is resolved against the directory of the
        loaded config file, when known.

        Returns
        -------
        dict[str, Any]
            ``type`` (default ``"simple"``) and ``persist_path`` (or ``None``).
        """
        section = dict(self._section("storage"))
        section.setdefault("type", "simple")

        persist_path = section.get("persist_path")
        if persist_path and self.config_path is not None:
            p = Path(str(persist_path)).expanduser()
            if not p.is_absolute():
                p = (Path(self.config_path).parent / p).resolve()
            persist_path = str(p)
        section["persist_path"] = persist_path or None
        return section

    @cached_property
    def logging(self) -> dict:
        """Return the logging configuration section.

        Returns
        -------
        dict
            The ``logging`` section, or an empty dict.
        """
        return self._section("logging")
