from redilimit.core.app_factory import create_app

# Requires Redis at import time: the limiter loads its Lua script on startup.
app = create_app()
