"""
Configuration management for Page Improver.

This module provides configuration loading and management
for the pipeline, the CLI and the Celery worker.
"""

import os
from typing import Optional, List
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


DEFAULT_SCRY_PUBLIC_KEY = 'exopriors_public_readonly_v1_2025'


@dataclass
class Config:
    """Base configuration class."""

    DEBUG: bool = os.environ.get('DEBUG', 'false').lower() == 'true'
    TESTING: bool = os.environ.get('TESTING', 'false').lower() == 'true'

    APP_TITLE: str = 'Page Improver'
    APP_VERSION: str = '2.0.0'

    # Logging
    LOG_LEVEL: str = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE: str = os.environ.get('LOG_FILE', 'logs/page-improver.log')
    LOG_MAX_BYTES: int = int(os.environ.get('LOG_MAX_BYTES', 10485760))  # 10MB
    LOG_BACKUP_COUNT: int = int(os.environ.get('LOG_BACKUP_COUNT', 5))

    # Model service
    ANTHROPIC_API_KEY: Optional[str] = os.environ.get('ANTHROPIC_API_KEY')
    LITELLM_API_URL: Optional[str] = os.environ.get('LITELLM_API_URL')
    DEFAULT_MODEL: str = os.environ.get('DEFAULT_MODEL', 'anthropic/claude-sonnet-4-20250514')
    FAST_MODEL: str = os.environ.get('FAST_MODEL', 'anthropic/claude-3-5-haiku-20241022')
    LLM_MAX_TOKENS: int = int(os.environ.get('LLM_MAX_TOKENS', '16000'))
    LLM_TIMEOUT: int = int(os.environ.get('LLM_TIMEOUT', '600'))  # long generations
    SIMPLE_TIMEOUT: int = int(os.environ.get('SIMPLE_TIMEOUT', '30'))
    LLM_MAX_RETRIES: int = int(os.environ.get('LLM_MAX_RETRIES', '2'))
    LLM_RETRY_BASE_DELAY: float = float(os.environ.get('LLM_RETRY_BASE_DELAY', '2.0'))
    MAX_TOOL_TURNS: int = int(os.environ.get('MAX_TOOL_TURNS', '10'))

    # Heartbeats
    API_HEARTBEAT_INTERVAL: int = int(os.environ.get('API_HEARTBEAT_INTERVAL', '30'))
    PHASE_HEARTBEAT_INTERVAL: int = int(os.environ.get('PHASE_HEARTBEAT_INTERVAL', '60'))

    # Content store
    PROJECT_ROOT: str = os.environ.get('PROJECT_ROOT', os.getcwd())
    CONTENT_DIR: str = os.environ.get('CONTENT_DIR', 'content/docs')
    PAGES_FILE: str = os.environ.get('PAGES_FILE', 'app/src/data/pages.json')
    ID_REGISTRY_FILE: str = os.environ.get('ID_REGISTRY_FILE', 'data/id-registry.json')
    EDIT_LOG_DIR: str = os.environ.get('EDIT_LOG_DIR', 'data/edit-logs')
    TEMP_DIR: str = os.environ.get('TEMP_DIR', '.claude/temp/page-improver')

    # Web search (Linkup)
    LINKUP_API_URL: str = os.environ.get('LINKUP_API_URL', 'https://api.linkup.so/v1/search')
    LINKUP_API_KEY: Optional[str] = os.environ.get('LINKUP_API_KEY')
    LINKUP_MAX_RESULTS: int = int(os.environ.get('LINKUP_MAX_RESULTS', '8'))

    # Domain search (SCRY)
    SCRY_API_URL: str = os.environ.get('SCRY_API_URL', 'https://api.exopriors.com/v1/scry/query')
    SCRY_API_KEY: str = os.environ.get('SCRY_API_KEY', DEFAULT_SCRY_PUBLIC_KEY)

    # Source fetching
    FETCH_SOURCES: bool = os.environ.get('FETCH_SOURCES', 'true').lower() == 'true'
    FETCH_CONCURRENCY: int = int(os.environ.get('FETCH_CONCURRENCY', '3'))
    FETCH_DELAY: float = float(os.environ.get('FETCH_DELAY', '0.5'))
    FETCH_TIMEOUT: int = int(os.environ.get('FETCH_TIMEOUT', '15'))

    # Grading after apply; {page_id} is substituted
    GRADE_COMMAND: str = os.environ.get(
        'GRADE_COMMAND',
        'node --import tsx/esm crux/authoring/grade-content.ts --page {page_id} --apply'
    )
    GRADE_TIMEOUT: int = int(os.environ.get('GRADE_TIMEOUT', '600'))

    # Celery configuration
    CELERY_BROKER_URL: str = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
    CELERY_RESULT_BACKEND: str = os.environ.get('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
    CELERY_TASK_TIME_LIMIT: int = int(os.environ.get('CELERY_TASK_TIME_LIMIT', '3600'))  # 1 hour
    CELERY_TASK_SOFT_TIME_LIMIT: int = int(os.environ.get('CELERY_TASK_SOFT_TIME_LIMIT', '3300'))  # 55 minutes
    CELERY_WORKER_PREFETCH_MULTIPLIER: int = int(os.environ.get('CELERY_WORKER_PREFETCH_MULTIPLIER', '1'))
    CELERY_WORKER_MAX_TASKS_PER_CHILD: int = int(os.environ.get('CELERY_WORKER_MAX_TASKS_PER_CHILD', '50'))

    def resolve(self, relative: str) -> str:
        """Resolve a path relative to the project root."""
        return os.path.join(self.PROJECT_ROOT, relative)


@dataclass
class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG: bool = True
    LOG_LEVEL: str = 'DEBUG'


@dataclass
class ProductionConfig(Config):
    """Production configuration."""
    DEBUG: bool = False
    LOG_LEVEL: str = 'INFO'


@dataclass
class TestingConfig(Config):
    """Testing configuration."""
    TESTING: bool = True
    DEBUG: bool = True
    LOG_LEVEL: str = 'CRITICAL'
    LOG_FILE: str = ''
    LLM_RETRY_BASE_DELAY: float = 0.0
    FETCH_DELAY: float = 0.0
    FETCH_SOURCES: bool = False


def get_config(config_name: str = None) -> Config:
    """
    Get configuration based on environment.

    Args:
        config_name: Configuration name (development, production, testing)

    Returns:
        Configuration object
    """
    if config_name is None:
        config_name = os.environ.get('PAGE_IMPROVER_ENV', 'production').lower()

    config_map = {
        'development': DevelopmentConfig,
        'production': ProductionConfig,
        'testing': TestingConfig
    }

    config_class = config_map.get(config_name, ProductionConfig)
    return config_class()


def validate_config(config: Config) -> List[str]:
    """
    Validate configuration.

    Args:
        config: Configuration to validate

    Returns:
        List of validation errors
    """
    errors = []

    if config.DEFAULT_MODEL.startswith('anthropic/') and not config.ANTHROPIC_API_KEY:
        errors.append("ANTHROPIC_API_KEY is required for anthropic/ models")

    if not config.LINKUP_API_KEY:
        errors.append("LINKUP_API_KEY is required for web search")

    if config.FETCH_CONCURRENCY < 1:
        errors.append("FETCH_CONCURRENCY must be at least 1")

    if config.MAX_TOOL_TURNS < 0:
        errors.append("MAX_TOOL_TURNS must not be negative")

    if not os.path.isdir(config.PROJECT_ROOT):
        errors.append(f"PROJECT_ROOT does not exist: {config.PROJECT_ROOT}")

    return errors
