"""
Configuration Manager

Reads viewer settings (document storage, rendering, server, logging) from
the environment, with defaults for local use.
"""

import os
import sys
import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ('api', 'azure_blob')


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


class ConfigurationManager:
    """Environment-backed settings for the viewer."""

    @staticmethod
    def load_configuration() -> Dict[str, Any]:
        """Build the settings dict from the environment."""
        use_managed_identity = _env_bool('USE_MANAGED_IDENTITY', 'false')
        config = {
            'storage': {
                # api: portal document endpoint over HTTP, azure_blob: container lookup
                'backend': os.getenv('DOCUMENT_STORAGE_BACKEND', 'api').lower(),
                'api_base_url': os.getenv('DOCUMENT_API_BASE_URL', 'http://localhost:8080'),
                'api_token': os.getenv('DOCUMENT_API_TOKEN'),
                'timeout': float(os.getenv('DOCUMENT_FETCH_TIMEOUT', '30')),
                'enable_managed_identity': use_managed_identity,
                'account_name': os.getenv('AZURE_STORAGE_ACCOUNT_NAME', '') if use_managed_identity else None,
                'connection_string': os.getenv('AZURE_STORAGE_CONNECTION_STRING') if not use_managed_identity else None,
                'container_name': os.getenv('AZURE_CONTAINER_NAME', 'submission-documents'),
            },
            'rendering': {
                'dpi': int(os.getenv('RENDER_DPI', '100')),
                'tooltip_width': int(os.getenv('TOOLTIP_WIDTH', '200')),
                'tooltip_height': int(os.getenv('TOOLTIP_HEIGHT', '100')),
                'tooltip_offset': int(os.getenv('TOOLTIP_OFFSET', '20')),
                'tooltip_min_margin': int(os.getenv('TOOLTIP_MIN_MARGIN', '10')),
                'marker_size': int(os.getenv('MARKER_SIZE', '12')),
                'reduced_motion': _env_bool('REDUCED_MOTION', 'false'),
            },
            'server': {
                'host': os.getenv('SERVER_HOST', '127.0.0.1'),
                'port': int(os.getenv('SERVER_PORT', '8000')),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO').upper(),
                'format': os.getenv('LOG_FORMAT', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        ConfigurationManager._validate_configuration(config)

        logger.info("✅ Configuration loaded successfully")
        return config

    @staticmethod
    def _validate_configuration(config: Dict[str, Any]):
        """Collect every configuration problem and raise them together."""
        errors = []
        storage = config['storage']

        if storage['backend'] not in STORAGE_BACKENDS:
            errors.append(
                f"DOCUMENT_STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, got '{storage['backend']}'")
        elif storage['backend'] == 'api':
            if not storage['api_base_url'].startswith(('http://', 'https://')):
                errors.append("DOCUMENT_API_BASE_URL must be an http(s) URL")
        elif storage['backend'] == 'azure_blob':
            if storage['enable_managed_identity']:
                if not storage['account_name']:
                    errors.append("AZURE_STORAGE_ACCOUNT_NAME is required when USE_MANAGED_IDENTITY is true")
            elif not storage['connection_string']:
                errors.append("AZURE_STORAGE_CONNECTION_STRING is required when USE_MANAGED_IDENTITY is false")

        if storage['timeout'] <= 0:
            errors.append("DOCUMENT_FETCH_TIMEOUT must be positive")

        rendering = config['rendering']
        if not 36 <= rendering['dpi'] <= 600:
            errors.append(f"RENDER_DPI must be between 36 and 600, got {rendering['dpi']}")
        for key in ('tooltip_width', 'tooltip_height', 'marker_size'):
            if rendering[key] <= 0:
                errors.append(f"{key.upper()} must be positive")

        if errors:
            error_msg = "Configuration validation failed:\n" + \
                "\n".join(f"  - {error}" for error in errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

    @staticmethod
    def setup_logging(config: Dict[str, Any]):
        """Configure root logging from the `logging` section."""
        log_level = getattr(logging, config['logging']['level'], logging.INFO)
        log_format = config['logging']['format']

        handlers = [logging.StreamHandler()]
        if config['logging'].get('file'):
            handlers.append(logging.FileHandler(config['logging']['file']))

        logging.basicConfig(
            level=log_level,
            format=log_format,
            handlers=handlers,
            force=True
        )

        # Quiet chatty client libraries
        for noisy in ('azure', 'httpx', 'httpcore', 'urllib3', 'PIL'):
            logging.getLogger(noisy).setLevel(logging.WARNING)

        logger.info(
            f"Logging configured at {config['logging']['level']} level")

    @staticmethod
    def get_environment_info() -> Dict[str, Any]:
        """Interpreter, platform and viewer-related environment variables."""
        return {
            'python_version': sys.version,
            'platform': os.name,
            'working_directory': os.getcwd(),
            'environment_variables': {
                key: '***' if any(s in key.lower() for s in ('key', 'secret', 'password', 'token', 'connection'))
                else value
                for key, value in os.environ.items()
                if key.startswith(('AZURE_', 'LOG_', 'DOCUMENT_', 'RENDER_', 'SERVER_', 'TOOLTIP_'))
            }
        }

    @staticmethod
    def create_sample_env_file(filepath: str = '.env.sample') -> Optional[str]:
        """Write a commented .env template."""
        sample_content = '''# Document Storage Configuration
# api | azure_blob
DOCUMENT_STORAGE_BACKEND=api
DOCUMENT_API_BASE_URL=http://localhost:8080
DOCUMENT_API_TOKEN=
DOCUMENT_FETCH_TIMEOUT=30

# Azure Blob Storage (DOCUMENT_STORAGE_BACKEND=azure_blob)
AZURE_STORAGE_CONNECTION_STRING=DefaultEndpointsProtocol=https;AccountName=your_account;AccountKey=your_key;EndpointSuffix=core.windows.net
AZURE_STORAGE_ACCOUNT_NAME=your_account
AZURE_CONTAINER_NAME=submission-documents
USE_MANAGED_IDENTITY=false

# Rendering Configuration
RENDER_DPI=100
TOOLTIP_WIDTH=200
TOOLTIP_HEIGHT=100
TOOLTIP_OFFSET=20
TOOLTIP_MIN_MARGIN=10
MARKER_SIZE=12
REDUCED_MOTION=false

# Server Configuration
SERVER_HOST=127.0.0.1
SERVER_PORT=8000

# Logging Configuration
LOG_LEVEL=INFO
LOG_FORMAT=%(asctime)s - %(name)s - %(levelname)s - %(message)s
'''

        with open(filepath, 'w') as f:
            f.write(sample_content)

        logger.info(f"Sample environment file created: {filepath}")
        return filepath
