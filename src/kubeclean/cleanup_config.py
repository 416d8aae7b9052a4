"""
Cleanup rule configuration for kubeclean

Rules are read from a YAML file:

    dryRun: false
    batchSize: 10
    podCleanupConfig:
      enabled: true
      rules:
        - name: succeeded-jobs
          enabled: true
          phase: Succeeded
          ttl: 1h30m
          namespaces: [batch]
          selector:
            matchLabels:
              app: worker
"""

from dataclasses import dataclass, field
from datetime import timedelta
from threading import Lock
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from kubeclean.duration import parse_duration
from kubeclean.errors import (
    InvalidBatchSizeError,
    InvalidConfigError,
    MissingFilterError,
    MissingNameError,
    NonPositiveTTLError,
    ParseError,
    RuleValidationError,
    UnreadableFileError,
    ValidationError,
)

DEFAULT_BATCH_SIZE = 10

# Empty namespace means "every namespace" to the Kubernetes API
ALL_NAMESPACES = ""


@dataclass
class LabelSelector:
    """Equality-based label selection; every pair must match"""

    match_labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "LabelSelector":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ParseError(f"selector must be a mapping, got {type(data).__name__}")

        match_labels = data.get("matchLabels") or {}
        if not isinstance(match_labels, Mapping):
            raise ParseError("selector.matchLabels must be a mapping of label to value")
        return cls(match_labels={str(k): _label_value(v) for k, v in match_labels.items()})


@dataclass
class PodCleanRule:
    """A single rule selecting pods to delete"""

    name: str = ""
    enabled: bool = False
    selector: LabelSelector = field(default_factory=LabelSelector)
    phase: str = ""
    ttl: timedelta = field(default_factory=timedelta)
    namespaces: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PodCleanRule":
        if not isinstance(data, Mapping):
            raise ParseError(f"rule must be a mapping, got {type(data).__name__}")

        ttl = timedelta(0)
        raw_ttl = data.get("ttl")
        if raw_ttl is not None:
            try:
                ttl = parse_duration(str(raw_ttl))
            except ValueError as e:
                raise ParseError(str(e)) from e

        namespaces = data.get("namespaces") or []
        if isinstance(namespaces, str):
            namespaces = [namespaces]
        if not isinstance(namespaces, list):
            raise ParseError("namespaces must be a list of strings")

        return cls(
            name=str(data.get("name") or ""),
            enabled=_bool_field(data, "enabled"),
            selector=LabelSelector.from_dict(data.get("selector")),
            phase=str(data.get("phase") or ""),
            ttl=ttl,
            namespaces=[str(ns) for ns in namespaces],
        )

    def validate(self) -> None:
        """Check required fields; disabled rules are never checked"""
        if not self.enabled:
            return

        if not self.name:
            raise MissingNameError("rule name must be provided")

        if self.ttl <= timedelta(0):
            raise NonPositiveTTLError("ttl must be greater than zero")

        if not self.phase and not self.selector.match_labels:
            raise MissingFilterError("either 'phase' or 'selector.matchLabels' must be specified")


@dataclass
class PodCleanupConfig:
    """Pod cleanup switch and its ordered rules"""

    enabled: bool = False
    rules: List[PodCleanRule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PodCleanupConfig":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ParseError("podCleanupConfig must be a mapping")

        rules = data.get("rules") or []
        if not isinstance(rules, list):
            raise ParseError("podCleanupConfig.rules must be a list")

        return cls(
            enabled=_bool_field(data, "enabled"),
            rules=[PodCleanRule.from_dict(rule) for rule in rules],
        )

    def validate(self) -> None:
        """Validate every rule and report all failures together"""
        if not self.enabled:
            return

        errors = []
        for idx, rule in enumerate(self.rules, start=1):
            try:
                rule.validate()
            except ValidationError as e:
                errors.append((idx, rule.name, e))

        if errors:
            raise RuleValidationError(errors)


@dataclass
class CleanupConfig:
    """Root cleanup configuration"""

    dry_run: bool = False
    batch_size: int = 0
    pod_cleanup_config: PodCleanupConfig = field(default_factory=PodCleanupConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CleanupConfig":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ParseError("config root must be a mapping")

        batch_size = data.get("batchSize") or 0
        if isinstance(batch_size, bool) or not isinstance(batch_size, int):
            raise ParseError(f"batchSize must be an integer, got {batch_size!r}")

        return cls(
            dry_run=_bool_field(data, "dryRun"),
            batch_size=batch_size,
            pod_cleanup_config=PodCleanupConfig.from_dict(data.get("podCleanupConfig")),
        )

    def set_defaults(self) -> None:
        if self.batch_size <= 0:
            self.batch_size = DEFAULT_BATCH_SIZE

    def validate(self) -> None:
        if self.batch_size < 0:
            raise InvalidBatchSizeError("batch size cannot be negative")

        try:
            self.pod_cleanup_config.validate()
        except ValidationError as e:
            raise ValidationError(f"pod cleanup config error: {e}") from e


def _bool_field(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ParseError(f"{key} must be a boolean, got {value!r}")
    return value


def _label_value(value: Any) -> str:
    # YAML turns bare true/false/numbers into non-strings
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def load_config(data: Union[bytes, str]) -> CleanupConfig:
    """Parse YAML bytes into a validated CleanupConfig with defaults applied"""
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise ParseError(f"failed to unmarshal config: {e}") from e

    config = CleanupConfig.from_dict(raw)

    try:
        config.validate()
    except ValidationError as e:
        raise InvalidConfigError(f"invalid config: {e}") from e

    config.set_defaults()
    return config


def load_config_from_file(path: str) -> CleanupConfig:
    """Read and parse the cleanup configuration file at path"""
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise UnreadableFileError(path, e) from e

    return load_config(data)


class ConfigStore:
    """Holds the live CleanupConfig shared by the watcher and the cleaner.

    The watcher is the only writer and always swaps in a complete, validated
    config. Readers take one snapshot per run and never see a partial update.
    """

    def __init__(self, config: CleanupConfig):
        self._lock = Lock()
        self._config = config

    @property
    def current(self) -> CleanupConfig:
        with self._lock:
            return self._config

    def replace(self, config: CleanupConfig) -> None:
        with self._lock:
            self._config = config
