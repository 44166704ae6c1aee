"""
Kite Client - Execution Target Factory.

============================================================
PURPOSE
============================================================
Selects the execution target once, at construction time.

USAGE
============================================================
```python
target = TargetFactory.create("native", config=config)
target = TargetFactory.create("sandbox", fetch=host_fetch)
target = TargetFactory.create("native", transport=MockTransport())
```

============================================================
"""

import logging
from typing import Callable, Dict, List

from ..config import ClientConfig
from .base import ExecutionTarget
from .native import NativeTarget
from .sandbox import SandboxTarget


logger = logging.getLogger(__name__)


TargetCreator = Callable[..., ExecutionTarget]


def _create_native(config: ClientConfig, **kwargs) -> ExecutionTarget:
    return NativeTarget(
        transport=kwargs.get("transport"),
        timeout_config=config.timeout,
    )


def _create_sandbox(config: ClientConfig, **kwargs) -> ExecutionTarget:
    return SandboxTarget(
        transport=kwargs.get("transport"),
        fetch=kwargs.get("fetch"),
        timeout_config=config.timeout,
    )


class TargetFactory:
    """
    Registry of execution target creators.
    """

    _creators: Dict[str, TargetCreator] = {
        NativeTarget.name: _create_native,
        SandboxTarget.name: _create_sandbox,
    }

    @classmethod
    def register(cls, name: str, creator: TargetCreator) -> None:
        cls._creators[name.lower()] = creator

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._creators.pop(name.lower(), None)

    @classmethod
    def list_supported(cls) -> List[str]:
        return sorted(cls._creators)

    @classmethod
    def create(
        cls,
        name: str,
        config: ClientConfig = None,
        **kwargs,
    ) -> ExecutionTarget:
        """
        Create an execution target.

        Args:
            name: Target name
            config: Client configuration
            **kwargs: transport / fetch overrides

        Raises:
            ValueError: If target not supported
        """
        name = name.lower()
        config = config or ClientConfig()

        creator = cls._creators.get(name)
        if creator is None:
            raise ValueError(
                f"Unsupported execution target: {name}. "
                f"Supported: {', '.join(cls.list_supported())}"
            )

        target = creator(config, **kwargs)
        logger.debug(f"Created execution target {target!r}")
        return target
