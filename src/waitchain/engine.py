"""The root of every wait expression.

``WaitEngine`` owns what expressions share: the tree binding, the timer
backend, the scope observers, the execution id counter and the plugin
manager.  Expressions built from one engine execute through it::

    engine = WaitEngine(binding)
    node = await engine.target(document).query(find_title, "title").execute()
"""

from __future__ import annotations

import logging
from typing import Any

from waitchain.binding import TreeBinding
from waitchain.config.logging import configure_logging
from waitchain.config.settings import WaitSettings
from waitchain.execution import Execution
from waitchain.expression import ExpressionChainable, ExpressionNode, StartTimeOverride
from waitchain.observer import ScopeObserverRegistry
from waitchain.plugins.builtins.timing import CheckTimingPlugin
from waitchain.plugins.manager import PluginManager
from waitchain.steps import Step
from waitchain.timer import AsyncioTimerBackend, TimerBackend

logger = logging.getLogger(__name__)


class WaitEngine(ExpressionChainable):
    """Builds root expressions and runs their executions.

    Parameters:
        binding: Access to the observed tree.
        settings: Engine settings; loaded from env/TOML when omitted.
        timer_backend: Clock and scheduler; asyncio when omitted.
        plugin_manager: Receives the execution/check hooks.
    """

    def __init__(
        self,
        binding: TreeBinding,
        *,
        settings: WaitSettings | None = None,
        timer_backend: TimerBackend | None = None,
        plugin_manager: PluginManager | None = None,
    ) -> None:
        self.settings = settings if settings is not None else WaitSettings.load()
        self._binding = binding
        self.timer_backend = timer_backend if timer_backend is not None else AsyncioTimerBackend()
        self.observers = ScopeObserverRegistry(
            binding,
            self.timer_backend,
            coalesce_delay_ms=self.settings.observer.coalesce_delay_ms,
            teardown_delay_ms=self.settings.observer.teardown_delay_ms,
        )
        if self.settings.logging.configure:
            configure_logging(self.settings.logging)

        self.plugins = plugin_manager if plugin_manager is not None else PluginManager()
        if self.settings.plugins.discover and not self.plugins.is_loaded:
            loaded = self.plugins.discover_and_load()
            logger.debug("Plugins after discovery: %s", ", ".join(loaded) or "none")
        self._next_execution_id = 0

        if self.settings.telemetry.enabled:
            self.plugins.register_plugin(
                CheckTimingPlugin(max_completed=self.settings.telemetry.max_completed),
                name="check-timing",
            )

    @property
    def binding(self) -> TreeBinding:
        return self._binding

    def create_next_expression(
        self,
        step: Step,
        timeout_ms: float | None = None,
        override_start_time: float | StartTimeOverride | None = None,
    ) -> ExpressionNode:
        return ExpressionNode(
            None,
            step,
            self.settings.default_timeout_ms if timeout_ms is None else timeout_ms,
            override_start_time,
            executor=self._expression_executor,
            once_executor=self._once_executor,
            tree_binding=self._binding,
        )

    # ------------------------------------------------------------------
    # Change signals from the binding's owner
    # ------------------------------------------------------------------

    def run_all_checks(self, scope: Any) -> None:
        """Re-check every execution pending on *scope* right now."""
        self.observers.run_checks(scope)

    def run_all_checks_deferred(self, scope: Any) -> None:
        """Re-check executions pending on *scope* on the next loop iteration."""
        self.observers.run_checks_deferred(scope)

    def drain_deferrals(self, scope: Any) -> None:
        """Run a coalesced re-check for *scope* now instead of waiting for its timer."""
        self.observers.drain_deferrals(scope)

    # ------------------------------------------------------------------
    # Executors
    # ------------------------------------------------------------------

    def create_execution(self, expression: ExpressionNode) -> Execution:
        execution = Execution(
            expression,
            self.observers,
            self._next_execution_id,
            timer_backend=self.timer_backend,
        )
        self._next_execution_id += 1
        if self.plugins.has_impls("on_check_begin"):
            execution.on_check_begin = self._hook_dispatcher("on_check_begin")
        if self.plugins.has_impls("on_check_end"):
            execution.on_check_end = self._hook_dispatcher("on_check_end")
        return execution

    async def _expression_executor(self, expression: ExpressionNode) -> Any:
        execution = self.create_execution(expression)
        self._dispatch("on_execute_begin", execution)
        try:
            return await execution.execute()
        finally:
            self._dispatch("on_execute_end", execution)

    def _once_executor(self, expression: ExpressionNode) -> Any:
        return self.create_execution(expression).execute_once()

    def _hook_dispatcher(self, hook_name: str) -> Any:
        def dispatch(execution: Execution) -> None:
            self._dispatch(hook_name, execution)

        return dispatch

    def _dispatch(self, hook_name: str, execution: Execution) -> None:
        if self.plugins.has_impls(hook_name):
            self.plugins.dispatch(hook_name, event=execution.event())
