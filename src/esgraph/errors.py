from __future__ import annotations


class GraphError(RuntimeError):
    """Base class for failures while building a module graph.

    ``module_path`` names the project-relative module that was being processed
    when the failure happened, when there was one.
    """

    def __init__(self, message: str, module_path: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.module_path = module_path

    def __str__(self) -> str:
        if self.module_path:
            return f"{self.message} (while processing {self.module_path})"
        return self.message


class ResolutionError(GraphError):
    def __init__(self, specifier: str, directory: str, reason: str = "", module_path: str | None = None) -> None:
        message = f"cannot resolve '{specifier}' from {directory}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, module_path=module_path)
        self.specifier = specifier
        self.directory = directory
        self.reason = reason


class ReadError(GraphError):
    pass


class LexError(GraphError):
    pass


class PluginError(GraphError):
    pass


class HookError(GraphError):
    def __init__(self, plugin: str, hook: str, module_path: str | None = None) -> None:
        super().__init__(f"plugin '{plugin}' failed in {hook} hook", module_path=module_path)
        self.plugin = plugin
        self.hook = hook
