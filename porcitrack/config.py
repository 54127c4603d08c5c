import os

# Highest accepted LINEAGE_MAX_GENERATIONS.
MAX_GENERATIONS_LIMIT = 10


def default_database_uri():
    """
    Builds the SQLite URI used when no database URL is configured.
    The file lives in a writable, user-specific folder so the app works
    when installed somewhere read-only.
    """
    # On Windows this is typically C:\Users\YourUsername\AppData\Roaming
    app_data_path = os.environ.get('APPDATA')

    if app_data_path:
        data_folder = os.path.join(app_data_path, 'PorciTrack')
    else:
        data_folder = os.path.join(os.path.expanduser("~"), '.PorciTrack')

    os.makedirs(data_folder, exist_ok=True)
    db_path = os.path.join(data_folder, 'database.db')
    return f'sqlite:///{db_path}'


def _env_bool(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default, minimum=None, maximum=None):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}.")
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        raise ValueError(f"Environment variable {name} must be between {minimum} and {maximum}, got {value}.")
    return value


def build_config():
    """Returns the Flask config mapping, read from the environment."""
    database_url = os.environ.get('PORCITRACK_DATABASE_URL') or default_database_uri()
    cors_origins = os.environ.get('PORCITRACK_CORS_ORIGINS', 'http://localhost:3000')

    return {
        'SECRET_KEY': os.environ.get('PORCITRACK_SECRET_KEY', 'dev'),
        'SQLALCHEMY_DATABASE_URI': database_url,
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CORS_ORIGINS': [origin.strip() for origin in cors_origins.split(',') if origin.strip()],
        'LOG_LEVEL': os.environ.get('PORCITRACK_LOG_LEVEL', 'INFO'),
        'LOG_FILE': os.environ.get('PORCITRACK_LOG_FILE'),
        # Depth cap for ancestor queries (3 = up to great-grandparents). Listings keep
        # one entry per path, so their size can double with each extra generation.
        'LINEAGE_MAX_GENERATIONS': _env_int('LINEAGE_MAX_GENERATIONS', 3, minimum=1, maximum=MAX_GENERATIONS_LIMIT),
        # When on, a child may hold at most one 'mother' and one 'father' edge.
        'LINEAGE_UNIQUE_PARENT_LABELS': _env_bool('LINEAGE_UNIQUE_PARENT_LABELS', False),
        'PIGS_PAGE_LIMIT': 50,
        'PIGS_MAX_PAGE_LIMIT': 200,
    }
