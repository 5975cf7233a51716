# add-to-classpath $PLUGIN_PATH/src

# The directive above puts this plugin's src/ folder on the search path,
# so modules in it can be imported directly.
from greetings import greet

print(greet("{{ plugin_id }}"))
