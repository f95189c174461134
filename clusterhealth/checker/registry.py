"""
Checker Registry

Maps checker types to constructor functions and builds checkers from
their configuration. A registry is an ordinary value created at startup
and handed to whoever builds checkers.
"""

import logging
from typing import Callable, Dict, List, Union

from .base import Checker
from .config import CheckerConfig, CheckerType
from .errors import CheckerBuildError, UnknownCheckerTypeError

logger = logging.getLogger(__name__)

CheckerBuilder = Callable[[CheckerConfig], Checker]


class CheckerRegistry:
    """
    Registry of checker constructors keyed by checker type.

    Registering a type that is already present replaces the previous
    constructor (last writer wins).

    Example:
        registry = CheckerRegistry()
        registry.register(CheckerType.DNS, build_dns_checker)

        checker = registry.build(checker_config)
    """

    def __init__(self):
        self._builders: Dict[CheckerType, CheckerBuilder] = {}

    def register(self, checker_type: Union[CheckerType, str], builder: CheckerBuilder) -> None:
        """
        Register a constructor for a checker type.

        Args:
            checker_type: Checker type (enum member or its string value)
            builder: Callable turning a CheckerConfig into a Checker
        """
        checker_type = CheckerType(checker_type)
        if checker_type in self._builders:
            logger.warning(f"Overriding registered builder for checker type {checker_type.value}")
        self._builders[checker_type] = builder

    def is_registered(self, checker_type: Union[CheckerType, str]) -> bool:
        try:
            return CheckerType(checker_type) in self._builders
        except ValueError:
            return False

    def registered_types(self) -> List[str]:
        return sorted(t.value for t in self._builders)

    def build(self, cfg: CheckerConfig) -> Checker:
        """
        Build a checker from its configuration.

        Args:
            cfg: Checker configuration

        Returns:
            The constructed checker (never None)

        Raises:
            UnknownCheckerTypeError: No constructor registered for cfg.type
            CheckerBuildError: The constructor failed
        """
        try:
            builder = self._builders[CheckerType(cfg.type)]
        except (KeyError, ValueError):
            type_name = getattr(cfg.type, "value", cfg.type)
            raise UnknownCheckerTypeError(f"unrecognized checker type: {type_name!r}") from None

        try:
            checker = builder(cfg)
        except CheckerBuildError:
            raise
        except Exception as e:
            raise CheckerBuildError(f"failed to build checker {cfg.name!r}: {e}") from e

        if checker is None:
            raise CheckerBuildError(f"builder for checker {cfg.name!r} returned no checker")

        logger.debug(f"Built checker {checker.name} ({cfg.type.value})")
        return checker
