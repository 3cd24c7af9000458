"""
Flask entry point for the contact worklist API and operator CLI.

    python app.py                  # serve the API
    flask --app app worklist load  # CLI, see commands.py
"""
import os
import sys
from pathlib import Path
from typing import List

import click
from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).parent
DEV_CORS_ORIGINS = 'http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173'


def load_environment() -> List[Path]:
    """
    Load backend/.env, then the repository root .env.

    Values already in the environment win; without either file (production)
    the process environment is used as-is.
    """
    loaded = []
    for env_path in (BACKEND_DIR / '.env', BACKEND_DIR.parent / '.env'):
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)
            loaded.append(env_path)
    if not loaded:
        load_dotenv()
    return loaded


# Settings, auth and logging read the environment at import time
_loaded_env_files = load_environment()

from flask import Flask  # noqa: E402
from flask_cors import CORS  # noqa: E402

from api.routes import create_api, init_drive, init_store  # noqa: E402
from commands import OPERATOR_GROUPS, register_commands  # noqa: E402
from core.config import load_settings  # noqa: E402
from core.logger import logger  # noqa: E402

for _env_file in _loaded_env_files:
    logger.info(f"Loaded environment from {_env_file}")


def cors_origins() -> List[str]:
    """Allowed browser origins from CORS_ORIGINS; localhost defaults only in development."""
    origins = os.getenv('CORS_ORIGINS', '')
    if not origins:
        if '--dev' in sys.argv or os.getenv('FLASK_ENV') == 'development':
            logger.warning("Using default CORS origins for development. Set CORS_ORIGINS in production!")
            origins = DEV_CORS_ORIGINS
        else:
            raise ValueError("CORS_ORIGINS environment variable must be set in production")
    return [origin.strip() for origin in origins.split(',') if origin.strip()]


def running_operator_cli() -> bool:
    """True inside `flask <group> ...` for one of the operator command groups."""
    if click.get_current_context(silent=True) is None:
        return False
    return any(arg in OPERATOR_GROUPS for arg in sys.argv[1:])


def create_app(store=None, drive=None, settings=None):
    """
    Build the Flask app.

    store/drive/settings default to the environment-configured Google
    clients; tests pass in-memory or mocked ones.
    """
    app = Flask(__name__)
    # Operator CLI runs need no CORS origins
    if os.getenv('CORS_ORIGINS') or not running_operator_cli():
        CORS(app, origins=cors_origins())
    else:
        logger.info("CORS_ORIGINS not set; skipping CORS for the operator CLI")

    settings = settings or load_settings()
    if store is None:
        store = init_store(settings)
    if drive is None:
        drive = init_drive()

    # Shared with the CLI commands
    app.extensions['worklist'] = {'settings': settings, 'store': store, 'drive': drive}

    app.register_blueprint(create_api(store, drive, settings), url_prefix='/api')
    register_commands(app)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Liveness plus which Google clients are configured."""
        return {
            'status': 'ok',
            'sheets': store is not None,
            'drive': drive is not None,
            'subjects': list(settings.subjects),
        }, 200

    @app.route('/', methods=['GET'])
    def root():
        return {'status': 'ok', 'message': 'Contact Worklist API'}, 200

    logger.info(f"Worklist API ready for subjects {', '.join(settings.subjects)}")
    return app


if __name__ == '__main__':
    app = create_app()
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
    app.run(host='0.0.0.0', port=port, debug=debug)
