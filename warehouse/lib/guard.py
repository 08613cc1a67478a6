"""Environment detection and the destructive-operation guard.

The environment is derived once per invocation from the executing host
name. Unknown hosts are treated as development: the guard only ever
blocks on a positive production match.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Union

from warehouse.lib.config import DEFAULT_ENVIRONMENT_RULES, GuardConfig
from warehouse.lib.env import current_hostname, current_identity
from warehouse.lib.errors import GuardRejectedError
from warehouse.lib.layers import Layer

logger = logging.getLogger(__name__)

__all__ = [
    "Environment",
    "EnvironmentGuard",
    "Operation",
    "Outcome",
    "PROTECTED_LAYERS",
    "RunContext",
    "detect_environment",
]


class Environment(Enum):
    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


class Operation(Enum):
    """Maintenance operations recorded in the audit log."""

    RESET_LAYER = "reset_layer"
    REBUILD_INDEXES = "rebuild_indexes"
    LOAD_LAYER = "load_layer"


class Outcome(Enum):
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"
    FAILED = "FAILED"


# Layers whose reset destroys derived state that cannot be re-landed
PROTECTED_LAYERS = frozenset({Layer.CLEANSED, Layer.REPORTING})

# Most restrictive first
_DETECTION_ORDER = (Environment.PRODUCTION, Environment.TEST, Environment.DEVELOPMENT)


def detect_environment(
    hostname: str,
    rules: Optional[Dict[str, Iterable[str]]] = None,
) -> Environment:
    """Classify a host name using fnmatch patterns per environment.

    Example:
        >>> detect_environment("prd-sql-01")
        <Environment.PRODUCTION: 'production'>
        >>> detect_environment("build-agent-7")
        <Environment.DEVELOPMENT: 'development'>
    """
    rules = DEFAULT_ENVIRONMENT_RULES if rules is None else rules
    host = (hostname or "").strip().lower()

    for environment in _DETECTION_ORDER:
        for pattern in rules.get(environment.value, ()):
            if fnmatch.fnmatchcase(host, pattern.lower()):
                logger.debug(
                    "Host %s matched %s pattern '%s'",
                    host,
                    environment.value,
                    pattern,
                )
                return environment

    logger.info("Host %s matches no environment rule; treating as development", host)
    return Environment.DEVELOPMENT


@dataclass(frozen=True)
class RunContext:
    """Who is running what where. Computed once per invocation."""

    environment: Environment
    identity: str
    hostname: str
    force: bool = False

    @classmethod
    def detect(
        cls,
        rules: Optional[Dict[str, Iterable[str]]] = None,
        *,
        identity: Optional[str] = None,
        hostname: Optional[str] = None,
        force: bool = False,
    ) -> "RunContext":
        hostname = hostname or current_hostname()
        context = cls(
            environment=detect_environment(hostname, rules),
            identity=identity or current_identity(),
            hostname=hostname,
            force=force,
        )
        logger.info(
            "Running as %s on %s (%s environment)",
            context.identity,
            context.hostname,
            context.environment.value,
        )
        return context


class EnvironmentGuard:
    """Refuses destructive operations on protected layers in production."""

    def __init__(self, config: Optional[GuardConfig] = None):
        self.config = config or GuardConfig()

    def is_guarded(self, operation: Operation) -> bool:
        if operation is Operation.RESET_LAYER:
            return True
        return operation is Operation.REBUILD_INDEXES and self.config.protect_rebuilds

    def validate(
        self,
        operation: Operation,
        layer: Union[Layer, str],
        context: RunContext,
    ) -> None:
        """Raise GuardRejectedError if the operation may not run here.

        Called before any statement of the operation is executed.
        """
        layer = Layer.parse(layer)
        if (
            context.environment is not Environment.PRODUCTION
            or layer not in PROTECTED_LAYERS
            or not self.is_guarded(operation)
        ):
            return

        if context.force:
            logger.warning(
                "%s on %s layer in production forced by %s",
                operation.value,
                layer.value,
                context.identity,
            )
            return

        raise GuardRejectedError(
            f"{operation.value} on the {layer.value} layer is not allowed in "
            f"production without force",
            layer=layer.value,
            operation=operation.value,
            identity=context.identity,
            environment=context.environment.value,
        )
