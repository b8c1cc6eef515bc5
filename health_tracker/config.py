#!/usr/bin/env python3
"""
Configuration management
"""

import os
import logging
import yaml
from pathlib import Path
from dataclasses import dataclass, asdict

@dataclass
class Config:
    """Application configuration"""
    # Backend settings
    database_url: str = "sqlite:///health_tracker.db"

    # Derived view settings
    weekly_buckets: int = 6
    top_body_parts: int = 3

    # Team join codes
    join_code_length: int = 6
    join_code_ttl_hours: int = 0  # 0 = never expires
    join_code_max_uses: int = 0  # 0 = unlimited

    # Logging
    log_level: str = "INFO"

def load_config(config_file: str = "config.yaml") -> Config:
    """Load configuration from file or environment variables"""
    config_path = Path(config_file)

    # Load from file if exists
    if config_path.exists():
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
        return Config(**config_data)

    # Load from environment variables
    return Config(
        database_url=os.getenv("DATABASE_URL", "sqlite:///health_tracker.db"),
        weekly_buckets=int(os.getenv("WEEKLY_BUCKETS", "6")),
        top_body_parts=int(os.getenv("TOP_BODY_PARTS", "3")),
        join_code_length=int(os.getenv("JOIN_CODE_LENGTH", "6")),
        join_code_ttl_hours=int(os.getenv("JOIN_CODE_TTL_HOURS", "0")),
        join_code_max_uses=int(os.getenv("JOIN_CODE_MAX_USES", "0")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )

def create_sample_config(config_file: str = "config.yaml") -> None:
    """Create a sample configuration file"""
    config_path = Path(config_file)
    if config_path.exists():
        return

    with open(config_path, 'w') as f:
        yaml.dump(asdict(Config()), f, default_flow_style=False)

    print(f"Created sample config file: {config_file}")
    print("Point database_url at your backend before starting a session.")

def setup_logging(config: Config) -> None:
    """Configure root logging from the config"""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
