"""Custom exceptions for the plugin execution engine."""


class ScriptPlugError(RuntimeError):
    """Base exception for runner failures."""


class InterpreterInitError(ScriptPlugError):
    """Raised when a language interpreter cannot be constructed."""


class BindingError(ScriptPlugError):
    """Raised when a value cannot be bound into interpreter scope."""


class PluginNotFoundError(ScriptPlugError):
    """Raised when a plugin id does not match any plugin directory."""

    def __init__(self, plugin_id: str) -> None:
        super().__init__(f"Plugin '{plugin_id}' not found")
        self.plugin_id = plugin_id
