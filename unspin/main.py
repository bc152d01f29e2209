import sys
from importlib import import_module
from pathlib import Path

if __package__ in {None, ""}:
    project_root = Path(__file__).resolve().parent.parent
    sys.path.insert(0, str(project_root))

app_module = import_module("unspin")
create_app = app_module.create_app
AppSettings = import_module("unspin.config").AppSettings

app = create_app()


def server_options(app_settings=None):
    """Werkzeug options; the debugger only runs in development, on loopback."""
    app_settings = app_settings or AppSettings()
    is_development = app_settings.ENV.strip().lower() == "development"
    return {
        "host": "127.0.0.1" if is_development else "0.0.0.0",
        "port": 8080,
        "debug": is_development,
    }


if __name__ == "__main__":
    app.run(**server_options())
