# Entry script of the "{{ plugin_id }}" plugin.
#
# Bindings available to every run:
#   plugin_id, plugin_path, is_startup
#
# Declare dependencies on other plugins with:
#   # depends-on <plugin-id>

if is_startup:
    print("{{ plugin_id }} loaded at startup")
else:
    print(f"Hello from {plugin_id} in {plugin_path}")
