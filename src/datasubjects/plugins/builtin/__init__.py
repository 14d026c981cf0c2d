"""Built-in plugins registered by PluginManager.register_builtin_plugins()."""
