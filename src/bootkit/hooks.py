"""Hook aggregation and execution.

Plugins declare hooks in their manifest fragment under a ``hooks`` key,
grouped by audience and then by event::

    hooks:
      product:
        post-install: [core.log-install]
      acme:
        post-install: [acme.notify]

The ``product`` group applies to every product built on the bootstrap, the
group named after a product id applies only to that product. Which groups
contribute is the ``core.hooks-source`` policy.

Classes:
    - HookPolicy: Which manifest groups contribute hooks
    - HookRunner: Executes hook handlers for an event

Functions:
    - aggregate_hooks: Flatten manifest hook groups into hook descriptors
"""

import inspect
from collections.abc import Iterable
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from bootkit.errors import BootstrapErrorCode, NotFoundError

if TYPE_CHECKING:
    from bootkit.components import ComponentFactories

logger = structlog.get_logger()


class HookPolicy(str, Enum):
    """Which hook groups of a manifest fragment are aggregated.

    Attributes:
        PRODUCT: Only the shared ``product`` group.
        ID: Only the group named after the product id.
        BOTH: The ``product`` group followed by the id group.
        NONE: No hooks at all.
    """

    PRODUCT = "product"
    ID = "id"
    BOTH = "both"
    NONE = "none"


def aggregate_hooks(
    fragments: Iterable[tuple[str, dict[str, Any]]],
    product_id: str,
    policy: HookPolicy = HookPolicy.BOTH,
) -> list[dict[str, str]]:
    """Flatten plugin hook groups into a list of hook descriptors.

    Args:
        fragments: ``(plugin_name, fragment)`` pairs in discovery order.
        product_id: The product id selecting the id group.
        policy: Which groups contribute.

    Returns:
        Plain ``{"plugin", "event", "handler"}`` dicts, in fragment order and
        declaration order within a fragment.
    """
    policy = HookPolicy(policy)
    groups = {
        HookPolicy.PRODUCT: ["product"],
        HookPolicy.ID: [product_id],
        HookPolicy.BOTH: ["product", product_id],
        HookPolicy.NONE: [],
    }[policy]

    hooks: list[dict[str, str]] = []
    for plugin_name, fragment in fragments:
        section = fragment.get("hooks") or {}
        if not isinstance(section, dict):
            continue
        # "product" and the id may coincide
        for group in dict.fromkeys(groups):
            events = section.get(group) or {}
            for event, handlers in events.items():
                if isinstance(handlers, str):
                    handlers = [handlers]
                for handler in handlers:
                    hooks.append(
                        {"plugin": plugin_name, "event": event, "handler": handler}
                    )
    return hooks


class HookRunner:
    """Runs the handlers registered for an event.

    Handler names in hook descriptors are looked up in a factory table, so
    hooks share the late-binding mechanism used for components. A handler
    is called as ``handler(data, context)`` and may be sync or async.

    Example:
        runner = HookRunner(factories)
        results = await runner.run("post-install", {"name": "php"}, hooks,
                                   {"acme": bootstrap}, log)
    """

    def __init__(self, factories: "ComponentFactories") -> None:
        """Initialize the runner.

        Args:
            factories: Table used to resolve handler names.
        """
        self._factories = factories

    async def run(
        self,
        event: str,
        data: Any,
        hooks: list[dict[str, str]],
        context: dict[str, Any],
        log: Any = None,
    ) -> list[Any]:
        """Run every hook registered for ``event`` in order.

        Args:
            event: Event name.
            data: Payload passed to each handler.
            hooks: Hook descriptors as produced by ``aggregate_hooks``.
            context: Objects exposed to handlers.
            log: Logger to report on (defaults to the module logger).

        Returns:
            The handler results in execution order.

        Raises:
            NotFoundError: If a handler name has no registered factory.
        """
        log = log or logger
        matching = [hook for hook in hooks if hook["event"] == event]
        log.debug("hook_run_started", hook_event=event, handlers=len(matching))

        results: list[Any] = []
        for hook in matching:
            handler = self._factories.get(hook["handler"])
            if handler is None:
                raise NotFoundError(
                    code=BootstrapErrorCode.HOOK_NOT_FOUND,
                    message=f"No handler registered as {hook['handler']!r}",
                    plugin_name=hook["plugin"],
                )

            result = handler(data, context)
            if inspect.isawaitable(result):
                result = await result
            results.append(result)

        log.debug("hook_run_finished", hook_event=event, handlers=len(matching))
        return results
