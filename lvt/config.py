"""
Configuration management for the ledger.

Only operational settings live here. Fee bounds, reward windows, claim
gates and loan terms are protocol rules and are fixed in their modules.
"""
import json
import os
from dataclasses import dataclass, asdict


@dataclass
class DatabaseConfig:
    """Database configuration."""
    path: str = "./lvt_data"
    write_buffer_size: int = 4 * 1024 * 1024
    max_open_files: int = 1000
    compression: str = "snappy"


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9090


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s %(name)s %(levelname)s %(message)s"


SECTIONS = {
    'database': DatabaseConfig,
    'monitoring': MonitoringConfig,
    'logging': LoggingConfig,
}


@dataclass
class Config:
    """Main configuration."""
    database: DatabaseConfig
    monitoring: MonitoringConfig
    logging: LoggingConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            database=DatabaseConfig(),
            monitoring=MonitoringConfig(),
            logging=LoggingConfig(),
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """
        Load configuration from JSON file. Missing sections use defaults.

        Raises:
            ValueError: unknown section or setting, such as a 'protocol'
                section trying to override the protocol rules
        """
        with open(path, 'r') as f:
            data = json.load(f)

        unknown = set(data) - set(SECTIONS)
        if unknown:
            raise ValueError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

        sections = {}
        for name, section_cls in SECTIONS.items():
            try:
                sections[name] = section_cls(**data.get(name, {}))
            except TypeError as e:
                raise ValueError(f"Invalid '{name}' configuration: {e}") from e
        return cls(**sections)

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        return {
            'database': asdict(self.database),
            'monitoring': asdict(self.monitoring),
            'logging': asdict(self.logging),
        }
